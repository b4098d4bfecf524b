import pytest

import vibe_code
from vibe_code import AnalysisError, ConfigurationError, ErrorClassification, ErrorKind, UserExitError, main


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(vibe_code, 'setup_logging', lambda log_dir: str(tmp_path / 'test.log'))
    monkeypatch.setattr(vibe_code, 'serve_report', lambda output_dir, port, prompter: None)
    return tmp_path


def exit_code(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


def raising(error):
    def _run(settings, prompter, root):
        raise error
    return _run


def test_help(capsys):
    assert exit_code(['help']) == 0
    assert 'COMMANDS:' in capsys.readouterr().out


def test_quota(capsys):
    assert exit_code(['quota']) == 0
    assert 'Free Tier Limits' in capsys.readouterr().out


def test_version(capsys):
    assert exit_code(['--version']) == 0
    assert vibe_code.__version__ in capsys.readouterr().out


@pytest.mark.parametrize('argv', [['-p', '80', 'list'], ['list', '--port', '70000'], ['--port', 'abc', 'list']])
def test_invalid_port(argv, capsys):
    assert exit_code(argv) == 1
    assert 'Invalid port' in capsys.readouterr().out


def test_list_without_reports(capsys):
    assert exit_code(['list']) == 0
    assert 'No reports found.' in capsys.readouterr().out


def test_ls_alias():
    assert exit_code(['ls']) == 0


def test_clear_force(isolated):
    output_dir = isolated / '.vibe-output'
    output_dir.mkdir()
    (output_dir / 'report.json').write_text('{}')

    assert exit_code(['clear', '-f']) == 0
    assert not output_dir.exists()


def test_successful_analysis(monkeypatch):
    calls = []
    monkeypatch.setattr(vibe_code, 'run_analysis', lambda settings, prompter, root: calls.append(settings))

    assert exit_code(['-m', 'gemini-1.5-pro']) == 0
    assert calls[0]['model'] == 'gemini-1.5-pro'


def test_user_exit_is_success(monkeypatch, capsys):
    monkeypatch.setattr(vibe_code, 'run_analysis', raising(UserExitError("user chose to exit")))

    assert exit_code(['analyze']) == 0
    assert 'Analysis cancelled by user' in capsys.readouterr().out


def test_analysis_failure(monkeypatch):
    failure = AnalysisError(ErrorClassification(kind=ErrorKind.CONTENT_TOO_LARGE, message='Request too large'))
    monkeypatch.setattr(vibe_code, 'run_analysis', raising(failure))

    assert exit_code([]) == 3


def test_configuration_failure(monkeypatch):
    monkeypatch.setattr(vibe_code, 'run_analysis', raising(ConfigurationError("API key is required")))

    assert exit_code([]) == 2


def test_interrupt(monkeypatch):
    monkeypatch.setattr(vibe_code, 'run_analysis', raising(KeyboardInterrupt()))

    assert exit_code([]) == 1


def test_unexpected_failure(monkeypatch):
    monkeypatch.setattr(vibe_code, 'run_analysis', raising(RuntimeError("boom")))

    assert exit_code([]) == 4
