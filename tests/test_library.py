import os
import tempfile
import unittest

from romlauncher.errors import RomListingError
from romlauncher.library import RomLibrary


def _touch(path):
    with open(path, 'wb') as f:
        f.write(b'\x00' * 16)


class RomLibraryTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.roms_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_filters_non_rom_entries_and_sorts(self):
        for name in ('Zelda.gba', 'Pokemon Emerald.gba', 'notes.txt', 'advance wars.GBA', 'bad$.gba'):
            _touch(os.path.join(self.roms_dir, name))
        os.mkdir(os.path.join(self.roms_dir, 'folder.gba'))

        roms = RomLibrary(self.roms_dir).list_roms()

        self.assertEqual(roms, sorted(['Zelda.gba', 'Pokemon Emerald.gba', 'advance wars.GBA']))

    def test_listing_twice_is_stable(self):
        for name in ('b.gba', 'a.gba', 'c.gba'):
            _touch(os.path.join(self.roms_dir, name))
        library = RomLibrary(self.roms_dir)
        self.assertEqual(library.list_roms(), library.list_roms())
        self.assertEqual(library.list_roms(), ['a.gba', 'b.gba', 'c.gba'])

    def test_listing_reflects_new_files_without_restart(self):
        library = RomLibrary(self.roms_dir)
        self.assertEqual(library.list_roms(), [])
        _touch(os.path.join(self.roms_dir, 'new.gba'))
        self.assertEqual(library.list_roms(), ['new.gba'])

    def test_missing_directory_returns_empty(self):
        library = RomLibrary(os.path.join(self.roms_dir, 'does-not-exist'))
        self.assertEqual(library.list_roms(), [])

    def test_unreadable_path_raises_listing_error(self):
        not_a_dir = os.path.join(self.roms_dir, 'file.bin')
        _touch(not_a_dir)
        with self.assertRaises(RomListingError):
            RomLibrary(not_a_dir).list_roms()

    def test_exists_only_for_valid_files(self):
        _touch(os.path.join(self.roms_dir, 'game.gba'))
        library = RomLibrary(self.roms_dir)
        self.assertTrue(library.exists('game.gba'))
        self.assertFalse(library.exists('missing.gba'))
        self.assertFalse(library.exists('../game.gba'))


if __name__ == '__main__':
    unittest.main()
