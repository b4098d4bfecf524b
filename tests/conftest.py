"""
Shared fixtures for the vibe-code tests.

Provides scripted doubles for the interactive prompter and the model
gateway, so no test touches a terminal, the network, or the real clock.
"""

import os

import pytest

from vibe_code import FileRecord, GenerationConfig, Prompter


class ScriptedPrompter(Prompter):
    """Answers prompts from a fixed script and records every question."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.questions = []

    def _next(self, kind, question):
        self.questions.append((kind, question))
        if not self.answers:
            raise AssertionError(f"Unexpected {kind} prompt: {question}")
        return self.answers.pop(0)

    def ask(self, question, default=None):
        return self._next('ask', question)

    def choose(self, question, choices, default=None):
        return self._next('choose', question)

    def confirm(self, question, default=True):
        return self._next('confirm', question)

    def secret(self, question):
        return self._next('secret', question)


class ScriptedGateway:
    """Returns or raises each scripted item in turn."""

    def __init__(self, script):
        self.script = list(script)
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class StaticScanner:
    def __init__(self, files, root_names=()):
        self.files = list(files)
        self.root_names = frozenset(root_names)
        self.scan_count = 0

    def scan(self):
        self.scan_count += 1
        return list(self.files)


def make_record(path, content='', size=None):
    return FileRecord(
        path=path,
        content=content,
        size=len(content.encode('utf-8')) if size is None else size,
        extension=os.path.splitext(path)[1],
    )


@pytest.fixture
def make_file():
    return make_record


@pytest.fixture
def standard_config():
    return GenerationConfig(model='gemini-1.5-flash', api_key='k' * 32, tier='standard')


@pytest.fixture
def advanced_config():
    return GenerationConfig(
        model='gemini-1.5-pro-advanced', api_key='k' * 32, tier='advanced', advanced_features=True
    )


@pytest.fixture
def project(tmp_path):
    """Write {relative_path: str | bytes} into tmp_path and return the root."""

    def _write(files):
        for relative_path, content in files.items():
            target = tmp_path / relative_path
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding='utf-8')
        return tmp_path

    return _write


@pytest.fixture
def silent():
    lines = []

    def _output(*args, **kwargs):
        lines.append(" ".join(str(a) for a in args))

    _output.lines = lines
    return _output
