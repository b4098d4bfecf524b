import json

import pytest

from vibe_code import (
    ConfigurationError,
    Constants,
    build_generation_config,
    find_model_info,
    load_config,
)
from conftest import ScriptedPrompter

GOOD_KEY = 'A' * 39


def test_defaults_without_file():
    assert load_config(None) == Constants.DEFAULT_CONFIG


def test_missing_file_uses_defaults(tmp_path):
    assert load_config(str(tmp_path / 'absent.toml')) == Constants.DEFAULT_CONFIG


def test_toml(tmp_path):
    path = tmp_path / 'vibe.toml'
    path.write_text('model = "gemini-1.5-pro"\nport = 3000\nadvanced_features = false\n')

    config = load_config(str(path))

    assert config['model'] == 'gemini-1.5-pro'
    assert config['port'] == 3000
    assert config['advanced_features'] is False
    assert config['output_dir'] == Constants.OUTPUT_DIR


def test_yaml(tmp_path):
    path = tmp_path / 'vibe.yaml'
    path.write_text('model: gemini-1.5-flash-advanced\nmax_retry_wait_seconds: 120\n')

    config = load_config(str(path))

    assert config['model'] == 'gemini-1.5-flash-advanced'
    assert config['max_retry_wait_seconds'] == 120


def test_json(tmp_path):
    path = tmp_path / 'vibe.json'
    path.write_text(json.dumps({'output_dir': 'reports', 'port': 4000}))

    config = load_config(str(path))

    assert config['output_dir'] == 'reports'
    assert config['port'] == 4000


def test_unknown_extension_is_sniffed(tmp_path):
    path = tmp_path / 'vibe.conf'
    path.write_text('port = 5000\n')

    assert load_config(str(path))['port'] == 5000


@pytest.mark.parametrize('name, content', [
    ('broken.json', '{"port": '),
    ('broken.toml', 'port = = 3'),
    ('list.yaml', '- one\n- two\n'),
])
def test_invalid_content_uses_defaults(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content)

    assert load_config(str(path)) == Constants.DEFAULT_CONFIG


def test_out_of_range_values_are_clamped(tmp_path):
    path = tmp_path / 'vibe.toml'
    path.write_text('port = 80\nmax_retry_wait_seconds = 999999\nmodel = 42\n')

    config = load_config(str(path))

    assert config['port'] == Constants.DEFAULT_PORT
    assert config['max_retry_wait_seconds'] == Constants.MAX_RETRY_WAIT
    assert config['model'] is None


def test_find_model_info():
    assert find_model_info(' Gemini-1.5-Flash ')['tier'] == 'standard'
    assert find_model_info('gemini-1.5-pro-advanced')['tier'] == 'advanced'
    assert find_model_info('gpt-4') is None
    assert find_model_info(None) is None


def test_configured_model_and_env_key_need_no_prompts():
    prompter = ScriptedPrompter()

    config = build_generation_config(
        prompter, {'model': 'gemini-1.5-flash'}, environ={'GEMINI_API_KEY': GOOD_KEY}
    )

    assert config.model == 'gemini-1.5-flash'
    assert config.api_key == GOOD_KEY
    assert config.tier == 'standard'
    assert config.advanced_features is False
    assert prompter.questions == []


def test_model_and_key_are_asked():
    prompter = ScriptedPrompter(['gemini-1.5-pro', f'  {GOOD_KEY}  '])

    config = build_generation_config(prompter, {}, environ={})

    assert config.model == 'gemini-1.5-pro'
    assert config.api_key == GOOD_KEY
    assert [kind for kind, _ in prompter.questions] == ['choose', 'secret']


def test_advanced_model_confirms_features():
    prompter = ScriptedPrompter([True])

    config = build_generation_config(
        prompter, {'model': 'gemini-1.5-pro-advanced'}, environ={'GEMINI_API_KEY': GOOD_KEY}
    )

    assert config.tier == 'advanced'
    assert config.is_enhanced


def test_configured_advanced_features_skip_confirmation():
    config = build_generation_config(
        ScriptedPrompter(),
        {'model': 'gemini-1.5-flash-advanced', 'advanced_features': False},
        environ={'GEMINI_API_KEY': GOOD_KEY},
    )

    assert config.tier == 'advanced'
    assert not config.is_enhanced


def test_short_key_is_asked_again(capsys):
    prompter = ScriptedPrompter(['short', GOOD_KEY])

    config = build_generation_config(prompter, {'model': 'gemini-1.5-flash'}, environ={})

    assert config.api_key == GOOD_KEY
    assert 'too short' in capsys.readouterr().out


def test_empty_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        build_generation_config(ScriptedPrompter(['   ']), {'model': 'gemini-1.5-flash'}, environ={})


def test_base_url_from_environment():
    config = build_generation_config(
        ScriptedPrompter(),
        {'model': 'gemini-1.5-flash'},
        environ={'GEMINI_API_KEY': GOOD_KEY, 'GEMINI_API_BASE_URL': 'http://localhost:8080/v1'},
    )

    assert config.base_url == 'http://localhost:8080/v1'
