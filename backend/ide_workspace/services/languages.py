"""
IDE Workspace — Language Capabilities
======================================

What:  The per-language knobs of the otherwise language-agnostic workspace:
       default template, new-file naming and contents, entry-point detection,
       and how to execute.
How:   One abstract LanguageCapability, three small concrete classes. TreeOps,
       SyncEngine and the routes take a capability instead of branching on
       the language name.
Who:   Selected by `get_language(project.language)`.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ide_workspace.exceptions import ValidationError
from ide_workspace.schemas.api import ExecutionResult
from ide_workspace.schemas.project import FileEntry
from ide_workspace.services.execution_service import RuntimeSpec, execution_service
from ide_workspace.services.path_table import PathTable


class LanguageCapability(ABC):
    """
    Contract for one editor language.

    Attributes:
        name:           Language tag stored on the project ("python", ...)
        extension:      Source file extension including the dot
        new_file_stem:  Stem probed by TreeOps.add_file (stem, stem1, stem2, ...)
        entry_filename: Filename of the default template's entry point
        runtime:        How execution providers address this language
    """

    name: str
    extension: str
    new_file_stem: str
    entry_filename: str
    runtime: RuntimeSpec

    @abstractmethod
    def default_template(self) -> List[FileEntry]:
        """Files a new project starts with."""
        ...

    @abstractmethod
    def new_file_contents(self, filename: str) -> str:
        ...

    @abstractmethod
    def is_entry_point(self, entry: FileEntry) -> bool:
        ...

    def entry_point(self, table: PathTable) -> Optional[FileEntry]:
        """
        The file to open (and run) by default: the first entry point in table
        order, else the first file, else None for a table with no files.
        """
        files = table.files()
        for entry in files:
            if self.is_entry_point(entry):
                return entry
        return files[0] if files else None

    async def execute(
        self,
        files: List[FileEntry],
        entry_point: FileEntry,
        stdin: str = "",
    ) -> ExecutionResult:
        return await execution_service.run(self.runtime, files, entry_point, stdin)


class PythonLanguage(LanguageCapability):
    name = "python"
    extension = ".py"
    new_file_stem = "script"
    entry_filename = "main.py"
    runtime = RuntimeSpec(piston_language="python", wandbox_compiler="cpython-head")

    def default_template(self) -> List[FileEntry]:
        return [
            FileEntry.file(
                self.entry_filename,
                '# Welcome to Python IDE\nprint("Hello, World!")\n',
            )
        ]

    def new_file_contents(self, filename: str) -> str:
        return f'# New Python file\nprint("Hello from {filename}!")'

    def is_entry_point(self, entry: FileEntry) -> bool:
        return not entry.is_folder and entry.filename == self.entry_filename


class JavaLanguage(LanguageCapability):
    name = "java"
    extension = ".java"
    new_file_stem = "Class"
    entry_filename = "Main.java"
    runtime = RuntimeSpec(piston_language="java", wandbox_compiler="openjdk-head")

    _MAIN_METHOD = re.compile(r"public\s+static\s+void\s+main\s*\(")

    def default_template(self) -> List[FileEntry]:
        return [
            FileEntry.file(
                self.entry_filename,
                "import java.util.Scanner;\n\n"
                "public class Main {\n"
                "    public static void main(String args[]) {\n"
                "        \n"
                "    }\n"
                "}\n",
            )
        ]

    def new_file_contents(self, filename: str) -> str:
        class_name = filename[: -len(self.extension)] if filename.endswith(self.extension) else filename
        return f"public class {class_name} {{\n\n}}"

    def is_entry_point(self, entry: FileEntry) -> bool:
        if entry.is_folder or not entry.filename.endswith(self.extension):
            return False
        return bool(self._MAIN_METHOD.search(entry.contents))


class CppLanguage(LanguageCapability):
    name = "cpp"
    extension = ".cpp"
    new_file_stem = "source"
    entry_filename = "main.cpp"
    runtime = RuntimeSpec(
        piston_language="c++",
        wandbox_compiler="gcc-head",
        wandbox_options="warning,gnu++2a",
        wandbox_compiler_options="-std=c++20 -O2",
    )

    _MAIN_FUNCTION = re.compile(r"\bint\s+main\s*\(")

    def default_template(self) -> List[FileEntry]:
        return [
            FileEntry.file(
                self.entry_filename,
                "#include <iostream>\n\n"
                "int main() {\n"
                '    std::cout << "Hello, World!" << std::endl;\n'
                "    return 0;\n"
                "}\n",
            )
        ]

    def new_file_contents(self, filename: str) -> str:
        return f"// {filename}\n"

    def is_entry_point(self, entry: FileEntry) -> bool:
        if entry.is_folder or not entry.filename.endswith(self.extension):
            return False
        return bool(self._MAIN_FUNCTION.search(entry.contents))


_LANGUAGES: Dict[str, LanguageCapability] = {
    lang.name: lang for lang in (PythonLanguage(), JavaLanguage(), CppLanguage())
}


def get_language(name: str) -> LanguageCapability:
    """
    Raises:
        ValidationError: unknown language tag.
    """
    try:
        return _LANGUAGES[name]
    except KeyError:
        raise ValidationError(
            message=f"Unsupported language '{name}'. Must be one of: {sorted(_LANGUAGES)}",
            field="language",
        )
