"""Migration of add-on stacks from the legacy backend to compose."""

from .stack_migrator import StackMigrator, create_stack_scoped_volume_name  # noqa: F401
from .version_resolver import StackVersionResolver  # noqa: F401
from .volume_migrator import VolumeMigrator, copy_content, remove_content_of  # noqa: F401

__all__ = [
    "StackMigrator",
    "StackVersionResolver",
    "VolumeMigrator",
    "copy_content",
    "create_stack_scoped_volume_name",
    "remove_content_of",
]
