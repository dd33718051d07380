# region Docstring
"""
gitops_services.operations.find_and_replace
Regular expression find and replace across a set of files.
Overview:
- Reads the tree recursively so the files may live anywhere in the repository.
- Flags follow the familiar single-letter form: g (replace every match; without it only
    the first match of each file is replaced), i (ignore case), m (multiline) and
    s (dot matches newline).
- Replacement strings use Python re syntax (\\1, \\g<name>).
- A repository where none of the files match is skipped.
"""

# endregion
# region Imports
import re
from logging import Logger as T_Logger

from gitops_core.errors import ContentDecodeError
from gitops_core.models import GlobOptions, StepResult

from .base import Operation, OperationContext

# endregion
# region Operation

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


def parse_flags(flags: str) -> tuple[int, bool]:
    """Return the re flags and whether every match is replaced."""
    value = 0
    for flag in flags:
        if flag == "g":
            continue
        if flag not in _FLAG_MAP:
            raise ValueError(f"Unsupported flag '{flag}'; use any of g, i, m, s")
        value |= _FLAG_MAP[flag]
    return value, "g" in flags


class FindAndReplaceOperation(Operation):
    name = "find-and-replace"
    recursive = True
    glob_options = GlobOptions()

    def __init__(
        self, pattern: str, replacement: str, files: list[str], flags: str = "g"
    ) -> None:
        if not files:
            raise ValueError("At least one file to match is required")
        self.pattern = pattern
        self.replacement = replacement
        self.flags = flags
        self.target_paths = tuple(files)
        re_flags, self.replace_all = parse_flags(flags)
        self.regex = re.compile(pattern, re_flags)

    def prepare(self, logger: T_Logger) -> StepResult:
        logger.info(f"Finding and replacing {self.pattern} in {', '.join(self.target_paths)}")
        return StepResult.ok()

    def apply(self, ctx: OperationContext) -> StepResult:
        total = 0
        for descriptor in ctx.located.descriptors:
            try:
                content = ctx.staging.read_text(descriptor.path)
            except UnicodeDecodeError as e:
                return StepResult.fail(
                    ContentDecodeError(f"{descriptor.path} is not valid UTF-8: {e}")
                )
            replaced, count = self.regex.subn(
                self.replacement, content, count=0 if self.replace_all else 1
            )
            if count == 0:
                ctx.logger.debug(f"No match for {self.pattern} in {descriptor.path}")
                continue
            ctx.logger.info(
                f"Found {count} {'match' if count == 1 else 'matches'} for "
                f"{self.pattern} in {descriptor.path}"
            )
            ctx.staging.write_text(descriptor.path, replaced)
            total += count

        if total == 0:
            return StepResult.skip(f"No matches for {self.pattern}")
        return StepResult.ok(total)

    def commit_message(self, ctx: OperationContext) -> str:
        paths = ", ".join(d.path for d in ctx.located.descriptors)
        return f"Find and replace {self.pattern} to {self.replacement} in {paths}"

    def describe(self) -> str:
        return f"Finding and replacing {self.pattern} in matching repositories"


# endregion
