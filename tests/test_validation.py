import pytest

from romlauncher.validation import (
    INVALID_CHARACTERS, INVALID_LENGTH, PATH_TRAVERSAL,
    _is_bare_name, body_depth_exceeded, is_listable_rom_name, sanitize_text, validate_rom_name,
)


@pytest.mark.parametrize('name', [
    'Pokemon Emerald.gba',
    'zelda_minish-cap.GBA',
    'a.gba',
    'Mario Kart v1.1.Gba',
    'x' * 251 + '.gba',
])
def test_valid_names_are_accepted_unchanged(name):
    result = validate_rom_name(name)
    assert result.ok
    assert result.name == name
    assert result.reason is None


@pytest.mark.parametrize('value', [None, 42, 3.5, ['a.gba'], {'romName': 'a.gba'}, b'a.gba', ''])
def test_non_strings_and_empty_reject_with_invalid_length(value):
    result = validate_rom_name(value)
    assert not result.ok
    assert result.reason == INVALID_LENGTH


def test_length_is_checked_before_traversal():
    result = validate_rom_name('../' * 100 + 'a.gba')
    assert result.reason == INVALID_LENGTH


def test_name_of_exactly_255_chars_passes_length_rule():
    name = 'y' * 251 + '.gba'
    assert len(name) == 255
    assert validate_rom_name(name).ok
    assert validate_rom_name('y' + name).reason == INVALID_LENGTH


@pytest.mark.parametrize('name', [
    '../../etc/passwd',
    '..gba',
    'roms/game.gba',
    'C:\\games\\game.gba',
    'game..gba',
    '<script>/x.gba',
])
def test_traversal_tokens_reject_with_path_traversal(name):
    assert validate_rom_name(name).reason == PATH_TRAVERSAL


@pytest.mark.parametrize('name', [
    'game.gb',
    'game.gba.zip',
    'notes.txt',
    '.gba',
    'game$.gba',
    'ポケモン.gba',
    'game.gba ',
    '\u212a.gba',
    '\u017fonic.gba',
    'game\x1f.gba',
    'game\x85.gba',
    'game\u00a0.gba',
])
def test_disallowed_characters_or_extension_reject(name):
    assert validate_rom_name(name).reason == INVALID_CHARACTERS


def test_bare_name_check_rejects_directory_components():
    assert _is_bare_name('game.gba')
    assert not _is_bare_name('roms/game.gba')
    assert not _is_bare_name('roms\\game.gba')


def test_rejection_carries_client_message():
    assert validate_rom_name('../x.gba').message == 'Invalid ROM name format.'
    assert validate_rom_name('x.gba').message == ''


def test_listable_check_ignores_length_rule_but_applies_structure():
    assert is_listable_rom_name('Pokemon Emerald.gba')
    assert not is_listable_rom_name('../evil.gba')
    assert not is_listable_rom_name('notes.txt')


def test_body_depth_limit():
    shallow = {'romName': 'a.gba', 'meta': {'a': {'b': 1}}}
    assert not body_depth_exceeded(shallow)

    deep = {'a': {'b': {'c': {'d': {'e': {'f': 1}}}}}}
    assert body_depth_exceeded(deep)

    at_limit = {'a': {'b': {'c': {'d': {'e': 1}}}}}
    assert not body_depth_exceeded(at_limit)

    assert body_depth_exceeded({'a': [[[[[1]]]]]})


def test_sanitize_text_strips_script_vectors():
    dirty = '<script>alert(1)</script>hello <iframe src=x onload=bad()> javascript:void(0)'
    clean = sanitize_text(dirty)
    assert '<script' not in clean
    assert '<iframe' not in clean
    assert 'onload=' not in clean
    assert 'javascript:' not in clean
    assert clean.startswith('hello')
    assert sanitize_text(None) is None
