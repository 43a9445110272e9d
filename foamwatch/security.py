import os
import re
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("FOAMWatch")

# OpenFOAM field names: U components, species (CO2, H2O), phase fractions (alpha.water), p_rgh
_FIELD_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_.:-]*$")


def validate_path(
    path: Union[str, Path],
    base_dir: Optional[Union[str, Path]] = None,
    allow_new: bool = False
) -> Path:
    """
    Validates that a path is within the allowed base directory.

    Args:
        path: The path to validate.
        base_dir: The base directory to restrict access to.
        allow_new: If True, allows the path to not exist (a solver log that has
                   not been created yet), but it must still be within base_dir.

    Returns:
        The resolved Path object.
    """
    if base_dir is None:
        raise ValueError("base_dir must be provided for path validation")

    str_path = str(path)
    str_base = str(base_dir)

    try:
        real_base = os.path.realpath(os.path.abspath(str_base))
    except Exception as e:
        raise ValueError(f"Invalid base path: {e}")

    # Only a whole ".." component is traversal; "log..reactingFoam" is a valid name
    if ".." in Path(str_path).parts:
        raise ValueError("Invalid path: traversal characters detected")

    try:
        if os.path.isabs(str_path):
            final_path = os.path.abspath(str_path)
        else:
            final_path = os.path.abspath(os.path.join(real_base, str_path))

        # os.sep suffix so /base/foo is not matched by /base/foobar
        base_prefix = real_base + os.sep
        if final_path != real_base and not final_path.startswith(base_prefix):
            raise PermissionError(f"Access denied: Path {final_path} is outside allowed directory {real_base}")

        # Resolve symlinks only once the string path is known to be inside base
        if os.path.exists(final_path):
            real_final_path = os.path.realpath(final_path)
            if real_final_path != real_base and not real_final_path.startswith(base_prefix):
                raise PermissionError(f"Access denied: Symlink traversal detected to {real_final_path}")
            final_path = real_final_path
        elif not allow_new:
            raise FileNotFoundError(f"File not found: {final_path}")

    except Exception as e:
        if isinstance(e, (ValueError, PermissionError, FileNotFoundError)):
            raise
        raise ValueError(f"Invalid path structure: {e}")

    return Path(final_path)


def is_safe_field_name(field: str) -> bool:
    """
    Validate a monitored field name.

    Args:
        field: Field name as typed in the configuration form

    Returns:
        True if the name looks like an OpenFOAM field name, False otherwise
    """
    if not field or not isinstance(field, str):
        return False

    if len(field) > 50:
        return False

    return bool(_FIELD_NAME_RE.match(field))
