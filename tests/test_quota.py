from vibe_code import check_quota_limits, estimate_token_usage


def test_empty_estimate_is_prompt_overhead():
    assert estimate_token_usage([]) == 250


def test_counts_at_most_2000_characters_per_file(make_file):
    assert estimate_token_usage([make_file('big.py', 'x' * 10000)]) == 750
    assert estimate_token_usage([make_file('small.py', 'x' * 3)]) == 251


def test_estimate_never_decreases_as_files_grow(make_file):
    files = []
    previous = estimate_token_usage(files)
    for size in (0, 1, 5, 1999, 2000, 2001, 50000):
        files.append(make_file(f'f{size}.py', 'y' * size))
        current = estimate_token_usage(files)
        assert current >= previous
        previous = current


def test_estimate_is_deterministic(make_file):
    files = [make_file('a.py', 'abc' * 100), make_file('b.md', 'hello')]
    assert estimate_token_usage(files) == estimate_token_usage(list(files))


def test_check_warns_above_free_tier_minute_tokens(make_file, silent):
    files = [make_file(f'f{i}.py', 'z' * 2000) for i in range(70)]

    estimated = check_quota_limits(files, 'gemini-1.5-pro', output=silent)

    assert estimated == 35250
    assert any('WARNING' in line for line in silent.lines)


def test_check_reports_reasonable_usage(make_file, silent):
    estimated = check_quota_limits([make_file('a.py', 'x')], 'gemini-1.5-flash', output=silent)

    assert estimated == 251
    assert not any('WARNING' in line for line in silent.lines)
    assert any('reasonable' in line for line in silent.lines)
