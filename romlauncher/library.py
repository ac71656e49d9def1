"""
ROM directory listing.
"""

import errno
import logging
import os
from typing import List

from .errors import RomListingError
from .validation import is_listable_rom_name

logger = logging.getLogger(__name__)


class RomLibrary:
    """Reads the ROM directory on every call; contents may change at any time."""

    def __init__(self, roms_dir: str):
        self.roms_dir = roms_dir

    def list_roms(self) -> List[str]:
        """
        List playable ROM filenames.

        Entries that are not regular files or do not look like a safe
        ``.gba`` filename are skipped silently.

        Returns:
            Sorted filenames, or an empty list when the directory is missing.

        Raises:
            RomListingError: the directory exists but cannot be read.
        """
        names = []
        try:
            with os.scandir(self.roms_dir) as it:
                for entry in it:
                    try:
                        if not entry.is_file():
                            continue
                    except OSError:
                        continue
                    if is_listable_rom_name(entry.name):
                        names.append(entry.name)
        except FileNotFoundError:
            return []
        except OSError as e:
            if e.errno == errno.ENOENT:
                return []
            logger.error("Failed to list ROMs in %s: %s", self.roms_dir, e)
            raise RomListingError(str(e)) from e

        names.sort()
        return names

    def exists(self, name: str) -> bool:
        return is_listable_rom_name(name) and os.path.isfile(os.path.join(self.roms_dir, name))
