"""
IDE Workspace — Language Capability Tests
==========================================

What:  Tests for templates, entry-point detection and execution dispatch.
"""

import pytest
from unittest.mock import AsyncMock, patch

from ide_workspace.exceptions import ValidationError
from ide_workspace.schemas.api import ExecutionResult
from ide_workspace.schemas.project import FileEntry
from ide_workspace.services.languages import get_language
from ide_workspace.services.path_table import PathTable


class TestLanguages:
    def test_unknown_language(self):
        with pytest.raises(ValidationError):
            get_language("rust")

    @pytest.mark.parametrize(
        "name, entry",
        [("python", "main.py"), ("java", "Main.java"), ("cpp", "main.cpp")],
    )
    def test_template_starts_with_entry_point(self, name, entry):
        language = get_language(name)
        template = language.default_template()
        assert [e.path for e in template] == [entry]
        assert language.entry_point(PathTable(template)).path == entry

    def test_java_entry_point_is_detected_by_main_method(self):
        table = PathTable([
            FileEntry.file("Util.java", "public class Util {}"),
            FileEntry.folder("app"),
            FileEntry.file("app/App.java", "public class App {\n  public static void main (String[] a) {}\n}"),
        ])
        assert get_language("java").entry_point(table).path == "app/App.java"

    def test_cpp_entry_point_is_detected_by_main_function(self):
        table = PathTable([
            FileEntry.file("util.cpp", "int helper() { return 1; }"),
            FileEntry.file("prog.cpp", "int main() { return 0; }"),
        ])
        assert get_language("cpp").entry_point(table).path == "prog.cpp"

    def test_entry_point_falls_back_to_first_file(self):
        table = PathTable([FileEntry.folder("src"), FileEntry.file("src/tool.py")])
        assert get_language("python").entry_point(table).path == "src/tool.py"

    def test_no_files_means_no_entry_point(self):
        assert get_language("python").entry_point(PathTable([FileEntry.folder("src")])) is None

    @pytest.mark.asyncio
    async def test_execute_uses_language_runtime(self):
        result = ExecutionResult(success=True, output="ok", provider="piston")
        with patch("ide_workspace.services.languages.execution_service") as mock_service:
            mock_service.run = AsyncMock(return_value=result)
            language = get_language("cpp")
            entry = FileEntry.file("main.cpp", "int main() {}")

            assert await language.execute([entry], entry, "stdin") is result

            runtime = mock_service.run.await_args.args[0]
            assert runtime.piston_language == "c++"
            assert runtime.wandbox_compiler == "gcc-head"
