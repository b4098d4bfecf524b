import pytest

from vibe_code import clear_reports, format_file_size, list_reports
from conftest import ScriptedPrompter


@pytest.mark.parametrize('size, text', [
    (0, '0 B'),
    (512, '512 B'),
    (1024, '1 KB'),
    (1536, '1.5 KB'),
    (5 * 1024 * 1024, '5 MB'),
    (3 * 1024 ** 3, '3 GB'),
])
def test_format_file_size(size, text):
    assert format_file_size(size) == text


@pytest.fixture
def reports(tmp_path):
    output_dir = tmp_path / '.vibe-output'
    output_dir.mkdir()
    for name in ('report.json', 'report.md', 'report.html'):
        (output_dir / name).write_text('x' * 10)
    return output_dir


def test_list_reports(reports, capsys):
    assert list_reports(reports) == 3

    out = capsys.readouterr().out
    assert 'report.html' in out
    assert 'Size: 10 B' in out
    assert 'Found 3 report files' in out


def test_list_without_output_dir(tmp_path, capsys):
    assert list_reports(tmp_path / 'nothing') == 0
    assert 'No reports found.' in capsys.readouterr().out


def test_list_empty_output_dir(tmp_path, capsys):
    assert list_reports(tmp_path) == 0
    assert 'empty' in capsys.readouterr().out


def test_clear_with_force_skips_confirmation(reports):
    prompter = ScriptedPrompter()

    assert clear_reports(reports, True, prompter) is True
    assert not reports.exists()
    assert prompter.questions == []


def test_clear_confirmed(reports):
    assert clear_reports(reports, False, ScriptedPrompter([True])) is True
    assert not reports.exists()


def test_clear_declined_keeps_files(reports, capsys):
    assert clear_reports(reports, False, ScriptedPrompter([False])) is False
    assert sorted(p.name for p in reports.iterdir()) == ['report.html', 'report.json', 'report.md']
    assert 'Operation cancelled.' in capsys.readouterr().out


def test_clear_missing_dir(tmp_path):
    assert clear_reports(tmp_path / 'nope', True, ScriptedPrompter()) is False
