import string

from vibe_code import Constants, GenerationConfig, PromptBuilder


def _distinct_files(make_file, count, length):
    letters = string.ascii_letters
    return [make_file(f'src/file{i:02d}.py', letters[i] * length) for i in range(count)]


def test_standard_tier_caps_files_and_content(make_file, standard_config):
    files = _distinct_files(make_file, 30, 5000)

    prompt = PromptBuilder(standard_config).build(files)

    assert prompt.count('File: ') == 12
    assert 'File: src/file11.py' in prompt
    assert 'File: src/file12.py' not in prompt
    assert 'a' * 1200 in prompt
    assert 'a' * 1201 not in prompt
    assert '(30 total files, showing first 12)' in prompt


def test_advanced_tier_caps_files_and_content(make_file, advanced_config):
    files = _distinct_files(make_file, 30, 5000)

    prompt = PromptBuilder(advanced_config).build(files)

    assert prompt.count('File: ') == 20
    assert 'a' * 2000 in prompt
    assert 'a' * 2001 not in prompt


def test_truncated_files_carry_a_marker(make_file, standard_config):
    builder = PromptBuilder(standard_config)

    cut = builder.format_file_block(make_file('long.py', 'q' * 1201))
    whole = builder.format_file_block(make_file('short.py', 'q' * 1200))

    assert Constants.TRUNCATION_MARKER in cut
    assert Constants.TRUNCATION_MARKER not in whole
    assert cut.startswith('File: long.py\nContent:\n')


def test_large_files_are_left_out_of_the_prompt(make_file, standard_config):
    files = [
        make_file('ok.py', 'small'),
        make_file('bundle.js', 'B' * 10, size=Constants.PROMPT_MAX_FILE_BYTES),
    ]

    prompt = PromptBuilder(standard_config).build(files)

    assert 'File: ok.py' in prompt
    assert 'bundle.js' not in prompt
    assert '(2 total files' in prompt


def test_prompt_asks_for_the_fixed_topics(make_file, standard_config):
    prompt = PromptBuilder(standard_config).build([make_file('a.py', 'x')])

    for topic in ('Project Purpose', 'Technology Stack', 'Key Files', 'Architecture', 'Main Features'):
        assert topic in prompt
    assert '500-700 words' in prompt
    assert 'ENHANCED ANALYSIS MODE' not in prompt


def test_enhanced_mode_requests_deeper_review(make_file, advanced_config):
    prompt = PromptBuilder(advanced_config).build([make_file('a.py', 'x')])

    assert 'ENHANCED ANALYSIS MODE' in prompt
    assert 'refactoring' in prompt
    assert '800-1200 words' in prompt


def test_advanced_tier_without_features_keeps_standard_length(make_file):
    config = GenerationConfig(model='gemini-1.5-flash-advanced', api_key='k' * 32, tier='advanced')

    prompt = PromptBuilder(config).build(_distinct_files(make_file, 25, 10))

    assert prompt.count('File: ') == 20
    assert 'ENHANCED ANALYSIS MODE' not in prompt
    assert '500-700 words' in prompt


def test_build_is_deterministic(make_file, standard_config):
    files = _distinct_files(make_file, 5, 50)
    builder = PromptBuilder(standard_config)

    assert builder.build(files) == builder.build(files)


def test_shown_count_matches_included_blocks(make_file, standard_config):
    files = [make_file('big.py', 'b' * 40000), make_file('small.py', 's'), make_file('tiny.py', 't')]

    prompt = PromptBuilder(standard_config).build(files)

    assert '(3 total files, showing first 2)' in prompt
    assert prompt.count('File: ') == 2
