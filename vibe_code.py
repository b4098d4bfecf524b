#!/usr/bin/env python3
"""
vibe-code: AI-Powered Codebase Analyzer

A command-line tool that scans the current project directory, sends a sample of
its files to a Gemini model for summarization, and publishes the result as
JSON, Markdown and HTML reports served from a small local web dashboard.

When the model cannot be reached (quota exhausted, rate limited, bad key), the
tool walks the user through recovery: automatic backoff for transient rate
limits, then an interactive choice between a basic offline analysis, waiting
and retrying, or exiting cleanly.

Version: 1.0.0
License: MIT License

Dependencies:
    - openai>=1.0.0 (OpenAI-compatible Gemini endpoint)
    - toml>=0.10.2
    - PyYAML>=6.0
    - Markdown>=3.4
    - rich>=13.0

Environment Variables:
    - GEMINI_API_KEY: Gemini API key (asked for interactively when unset)
    - GEMINI_API_BASE_URL: Override for the OpenAI-compatible endpoint

Usage:
    vibe-code [analyze] [-p PORT] [-m MODEL] [-c CONFIG]
    vibe-code serve [-p PORT]
    vibe-code list
    vibe-code clear [-f]
    vibe-code quota

License:
    MIT License

    Permission is hereby granted, free of charge, to any person obtaining a copy
    of this software and associated documentation files (the "Software"), to deal
    in the Software without restriction, including without limitation the rights
    to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
    copies of the Software, and to permit persons to whom the Software is
    furnished to do so, subject to the following conditions:

    The above copyright notice and this permission notice shall be included in all
    copies or substantial portions of the Software.

    THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
    IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
    FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
    AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
    LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
    OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
    SOFTWARE.
"""

import argparse
import fnmatch
import html
import json
import logging
import math
import os
import re
import shutil
import socket
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Callable, Collection, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import markdown
import openai
import toml
import yaml
from rich.prompt import Confirm, Prompt

# Version information
__version__ = "1.0.0"
__license__ = "MIT"


class Constants:
    """
    Centralized configuration constants for the codebase analyzer.

    Every fixed limit, lookup table and default lives here so behavior can be
    tuned without hunting through the code.
    """

    # Application metadata
    APP_NAME = "vibe-code"
    APP_DESCRIPTION = "AI-powered codebase analyzer using Gemini LLMs"
    APP_VERSION = __version__

    # Logging configuration
    LOG_LEVEL = 'INFO'
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_DIR = 'logs'
    LOG_FILE_PREFIX = 'vibe_code_'
    TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'

    # Gemini API configuration
    API_KEY_ENV = 'GEMINI_API_KEY'
    BASE_URL_ENV = 'GEMINI_API_BASE_URL'
    GEMINI_BASE_URL = 'https://generativelanguage.googleapis.com/v1beta/openai/'
    API_KEY_MIN_LENGTH = 20
    API_KEY_URL = 'https://makersuite.google.com/app/apikey'
    RATE_LIMIT_DOCS_URL = 'https://ai.google.dev/gemini-api/docs/rate-limits'
    QUOTA_CONSOLE_URL = 'https://console.cloud.google.com/apis/api/generativelanguage.googleapis.com/quotas'
    BILLING_URL = 'https://console.cloud.google.com/billing'

    # Logical model name -> provider model name. Unknown names fall back to DEFAULT_PROVIDER_MODEL.
    MODEL_NAME_MAP = {
        'gemini-1.5-pro-advanced': 'gemini-1.5-pro',
        'gemini-1.5-flash-advanced': 'gemini-1.5-flash',
        'gemini-1.5-flash': 'gemini-1.5-flash',
        'gemini-1.5-pro': 'gemini-1.5-pro',
        'gemini-1.0-pro': 'gemini-1.0-pro',
    }
    DEFAULT_MODEL = 'gemini-1.5-flash'
    DEFAULT_PROVIDER_MODEL = 'gemini-1.5-flash'

    # Models offered in the interactive picker
    AVAILABLE_MODELS = [
        {
            'label': 'Gemini Pro Advanced (Enhanced Analysis)',
            'value': 'gemini-1.5-pro-advanced',
            'description': 'Enhanced model with advanced reasoning',
            'tier': 'advanced',
            'recommended': True,
        },
        {
            'label': 'Gemini Flash Advanced (Fast & Smart)',
            'value': 'gemini-1.5-flash-advanced',
            'description': 'Fast model with enhanced capabilities',
            'tier': 'advanced',
            'recommended': True,
        },
        {
            'label': 'Gemini 1.5 Flash (Recommended)',
            'value': 'gemini-1.5-flash',
            'description': 'Fast and reliable model',
            'tier': 'standard',
            'recommended': True,
        },
        {
            'label': 'Gemini 1.5 Pro (Detailed Analysis)',
            'value': 'gemini-1.5-pro',
            'description': 'Detailed analysis with comprehensive insights',
            'tier': 'standard',
            'recommended': False,
        },
    ]

    # Generation parameters per tier
    GENERATION_CONFIGS = {
        'advanced': {
            'temperature': 0.7,
            'top_k': 40,
            'top_p': 0.95,
            'max_output_tokens': 8192,
        },
        'standard': {
            'temperature': 0.9,
            'top_k': 1,
            'top_p': 1.0,
            'max_output_tokens': 2048,
        },
    }

    # Retry orchestration
    AUTO_RETRY_BUDGET = 2  # automatic retries for rate_limit failures
    AUTO_RETRY_BASE = 2  # backoff delay is AUTO_RETRY_BASE ** attempt seconds
    DEFAULT_RETRY_WAIT = 60  # seconds, when the provider suggests none
    MAX_RETRY_WAIT = 3600

    # Repository scanning
    EXCLUDED_DIRECTORIES = ['node_modules', '.git', 'dist', 'build', '.next', 'coverage']
    EXCLUDED_FILE_PATTERNS = ['*.log', '.env*', '*.lock', 'yarn.lock', 'package-lock.json']
    IMPORTANT_EXTENSIONS = {
        '.js', '.ts', '.jsx', '.tsx', '.vue', '.py', '.go', '.rs', '.java',
        '.json', '.md', '.yml', '.yaml', '.toml',
    }
    IMPORTANT_NAME_MARKERS = ['package.json', 'README', 'config']
    MAX_SCAN_FILES = 50
    MAX_FILE_SIZE_BYTES = 1024 * 1024

    # Token estimation
    CHARS_PER_TOKEN = 4
    ESTIMATE_MAX_CHARS_PER_FILE = 2000
    PROMPT_OVERHEAD_CHARS = 1000
    FREE_TIER_LIMITS = {
        'requests_per_day': 1500,
        'requests_per_minute': 15,
        'tokens_per_minute': 32000,
        'tokens_per_day': 1000000,
    }

    # Prompt construction per tier
    PROMPT_LIMITS = {
        'advanced': {'max_files': 20, 'max_chars': 2000},
        'standard': {'max_files': 12, 'max_chars': 1200},
    }
    PROMPT_MAX_FILE_BYTES = 30000
    TRUNCATION_MARKER = '\n... (truncated)'

    # Reports
    OUTPUT_DIR = '.vibe-output'
    REPORT_FILES = ('report.json', 'report.md', 'report.html')
    FALLBACK_MODEL_NAME = 'fallback-analyzer'
    MAX_TECH_STACK = 10
    MAX_KEY_FILES = 10
    KEY_FILE_NAMES = [
        'package.json', 'README.md', 'index.js', 'index.ts', 'app.js', 'app.ts',
        'main.js', 'main.ts', 'main.py', 'main.go', 'pyproject.toml',
        'next.config.js', 'vite.config.js', 'webpack.config.js',
    ]

    # Local server
    DEFAULT_PORT = 2000
    MIN_PORT = 1024
    MAX_PORT = 65535
    PORT_SEARCH_ATTEMPTS = 20

    # Default configuration values
    DEFAULT_CONFIG = {
        'model': None,
        'advanced_features': None,
        'output_dir': OUTPUT_DIR,
        'port': DEFAULT_PORT,
        'base_url': None,
        'log_dir': LOG_DIR,
        'max_retry_wait_seconds': MAX_RETRY_WAIT,
    }


logger = logging.getLogger(__name__)


def setup_logging(log_dir: str = Constants.LOG_DIR) -> str:
    """
    Set up logging with both console and file handlers.

    Called from the CLI entry point only, so importing the module has no
    side effects on the filesystem.

    Args:
        log_dir (str): Directory for the timestamped log file

    Returns:
        str: Path to the log file created
    """
    timestamp = datetime.now().strftime(Constants.TIMESTAMP_FORMAT)
    log_path = Path(log_dir) / f"{Constants.LOG_FILE_PREFIX}{timestamp}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, Constants.LOG_LEVEL),
        format=Constants.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_path, encoding='utf-8'),
        ],
    )

    # Set third-party library log levels to reduce noise
    for noisy in ('openai', 'httpx', 'urllib3', 'MARKDOWN'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return str(log_path)


class VibeCodeError(Exception):
    """Base exception class for analyzer errors."""
    pass


class ConfigurationError(VibeCodeError):
    """Exception raised for configuration related errors."""
    pass


class RepositoryScanError(VibeCodeError):
    """Exception raised when the scan root itself cannot be listed."""
    pass


class GatewayError(VibeCodeError):
    """Exception raised for any model provider or transport failure."""

    def __init__(self, message: str):
        super().__init__(message)
        self.raw_message = message


class AnalysisError(VibeCodeError):
    """Fatal, classified analysis failure with no recovery path."""

    def __init__(self, classification: 'ErrorClassification'):
        super().__init__(classification.message)
        self.classification = classification


class UserExitError(VibeCodeError):
    """The user chose to stop. Not a failure: callers exit with status 0."""
    pass


class ReportError(VibeCodeError):
    """Exception raised when a report cannot be assembled or saved."""
    pass


class ErrorKind(str, Enum):
    """Failure categories produced by classify_error."""
    QUOTA_EXCEEDED = 'quota_exceeded'
    RATE_LIMIT = 'rate_limit'
    INVALID_KEY = 'invalid_key'
    MODEL_UNAVAILABLE = 'model_unavailable'
    CONTENT_TOO_LARGE = 'content_too_large'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class FileRecord:
    """A scanned text file, path relative to the scan root in POSIX form."""
    path: str
    content: str
    size: int
    extension: str


@dataclass
class GenerationConfig:
    """Per-run model settings. `api_key` may be replaced during key recovery."""
    model: str
    api_key: str = field(repr=False)
    tier: str = 'standard'
    advanced_features: bool = False
    base_url: Optional[str] = None

    @property
    def is_enhanced(self) -> bool:
        return self.tier == 'advanced' and self.advanced_features


@dataclass
class ErrorClassification:
    """
    Structured view of one provider failure.

    Attributes:
        kind (ErrorKind): Failure category driving the recovery path
        message (str): Human-readable summary
        suggestions (List[str]): Ordered remediation hints
        retry_after (int, optional): Provider's recommended wait in seconds
    """
    kind: ErrorKind
    message: str
    suggestions: List[str] = field(default_factory=list)
    retry_after: Optional[int] = None


@dataclass(frozen=True)
class ProjectReport:
    """
    Structured result of one analysis run.

    Serialized with camelCase keys. Reports written by the earlier Node.js
    release name two fields differently (`geminiSummary`, `modelType`);
    `from_dict` reads both spellings.
    """
    project_name: str
    description: str
    tech_stack: List[str]
    key_files: List[Dict[str, str]]
    structure: str
    analysis: str
    total_files: int
    total_lines: int
    generated_at: str
    model_used: str
    model_tier: str

    _JSON_KEYS = {
        'project_name': 'projectName',
        'description': 'description',
        'tech_stack': 'techStack',
        'key_files': 'keyFiles',
        'structure': 'structure',
        'analysis': 'analysis',
        'total_files': 'totalFiles',
        'total_lines': 'totalLines',
        'generated_at': 'generatedAt',
        'model_used': 'modelUsed',
        'model_tier': 'modelTier',
    }
    _LEGACY_JSON_KEYS = {
        'analysis': 'geminiSummary',
        'modelTier': 'modelType',
    }

    def to_dict(self) -> Dict[str, Any]:
        return {json_key: getattr(self, attr) for attr, json_key in self._JSON_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ProjectReport':
        """
        Build a report from its JSON form.

        Raises:
            ReportError: If a required field is missing under both spellings
        """
        data = dict(data)
        for json_key, legacy_key in cls._LEGACY_JSON_KEYS.items():
            if json_key not in data and legacy_key in data:
                data[json_key] = data[legacy_key]
        try:
            return cls(**{attr: data[json_key] for attr, json_key in cls._JSON_KEYS.items()})
        except KeyError as e:
            raise ReportError(f"Report data is missing field {e}") from e


def is_important_file(relative_path: str) -> bool:
    """
    Decide whether a file carries enough signal to always be included.

    Args:
        relative_path (str): POSIX path relative to the scan root

    Returns:
        bool: True for source/doc/config extensions or well-known names
    """
    extension = os.path.splitext(relative_path)[1]
    if extension in Constants.IMPORTANT_EXTENSIONS:
        return True
    return any(marker in relative_path for marker in Constants.IMPORTANT_NAME_MARKERS)


class RepositoryScanner:
    """
    Walks a project directory and collects readable text files.

    Dependency directories, version control, build output, lockfiles, logs,
    dotfiles and `.env*` files are never visited. Every important file is
    kept; other files only fill up the remaining room below
    Constants.MAX_SCAN_FILES.

    Attributes:
        root (Path): Directory to scan
        root_names (FrozenSet[str]): Entry names directly under root from the
            last scan, including files the cap left out
    """

    def __init__(self, root: os.PathLike):
        self.root = Path(root)
        self.root_names: FrozenSet[str] = frozenset()

    def scan(self) -> List[FileRecord]:
        """
        Scan the root directory.

        Returns:
            List[FileRecord]: Important files first, then the rest, each group
            ordered by size (smallest first)

        Raises:
            RepositoryScanError: If the root directory itself cannot be listed
        """
        try:
            self.root_names = frozenset(os.listdir(self.root))
        except OSError as e:
            logger.error(f"Cannot list scan root {self.root}: {e}")
            raise RepositoryScanError(f"Cannot list scan root {self.root}: {e}") from e

        files: List[FileRecord] = []
        skipped = 0

        for relative_path in self._iter_candidate_paths():
            full_path = self.root / relative_path

            try:
                if not full_path.is_file():
                    continue
                size = full_path.stat().st_size
            except OSError as e:
                logger.warning(f"Cannot stat {relative_path}: {e}")
                skipped += 1
                continue

            if size > Constants.MAX_FILE_SIZE_BYTES:
                logger.debug(f"Skipping large file {relative_path} ({size} bytes)")
                skipped += 1
                continue

            if not is_important_file(relative_path) and len(files) >= Constants.MAX_SCAN_FILES:
                continue

            try:
                content = full_path.read_bytes().decode('utf-8')
            except UnicodeDecodeError:
                logger.debug(f"Skipping binary file: {relative_path}")
                skipped += 1
                continue
            except OSError as e:
                logger.warning(f"Failed to read {relative_path}: {e}")
                skipped += 1
                continue

            files.append(FileRecord(
                path=relative_path,
                content=content,
                size=size,
                extension=os.path.splitext(relative_path)[1],
            ))

        # Stable sort keeps walk order for equal keys
        files.sort(key=lambda f: (not is_important_file(f.path), f.size))

        logger.info(f"Scanned {self.root}: {len(files)} files included, {skipped} skipped")
        return files

    def _iter_candidate_paths(self):
        """Yield POSIX relative paths in a deterministic, sorted walk order."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune in place so os.walk never descends into excluded trees
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith('.') and d not in Constants.EXCLUDED_DIRECTORIES
            )

            relative_dir = Path(dirpath).relative_to(self.root)
            for filename in sorted(filenames):
                if filename.startswith('.') or self._is_excluded_file(filename):
                    continue
                yield (relative_dir / filename).as_posix()

    @staticmethod
    def _is_excluded_file(filename: str) -> bool:
        return any(fnmatch.fnmatch(filename, pattern) for pattern in Constants.EXCLUDED_FILE_PATTERNS)


def estimate_token_usage(files: Sequence[FileRecord]) -> int:
    """Approximate prompt tokens: 1 token per 4 characters, at most 2000 characters per file."""
    total_chars = sum(min(len(f.content), Constants.ESTIMATE_MAX_CHARS_PER_FILE) for f in files)
    return math.ceil((total_chars + Constants.PROMPT_OVERHEAD_CHARS) / Constants.CHARS_PER_TOKEN)


def check_quota_limits(files: Sequence[FileRecord], model: str,
                       output: Callable[..., None] = print) -> int:
    """
    Print an advisory token estimate against known free-tier limits.

    Never blocks the run.

    Returns:
        int: The estimated token count
    """
    estimated_tokens = estimate_token_usage(files)
    limits = Constants.FREE_TIER_LIMITS

    output("\nQuota Usage Estimation:")
    output(f"   Files to analyze: {len(files)}")
    output(f"   Estimated tokens: {estimated_tokens:,}")
    output(f"   Model: {model}")

    if estimated_tokens > limits['tokens_per_minute']:
        logger.warning(f"Estimated {estimated_tokens} tokens exceeds the free tier per-minute limit")
        output("\nWARNING: High token usage detected")
        output("   This request might exceed free tier limits")
        output("   Consider analyzing fewer files or upgrading to paid tier")
    else:
        output("\nToken usage looks reasonable for free tier")

    output("\nFree tier limits (approximate):")
    output(f"   - {limits['requests_per_day']:,} requests per day")
    output(f"   - {limits['requests_per_minute']} requests per minute")
    output(f"   - {limits['tokens_per_minute']:,} tokens per minute")

    return estimated_tokens


class PromptBuilder:
    """
    Serializes a sample of scanned files into a single analysis prompt.

    The sample is bounded by a file count and a per-file character budget that
    depend on the model tier. Files of PROMPT_MAX_FILE_BYTES or more are left
    out of the prompt but still count towards the report.
    """

    BASE_INSTRUCTIONS = """
Analyze this codebase and provide a comprehensive summary. Focus on:

1. **Project Purpose**: What does this project do?
2. **Technology Stack**: What frameworks, libraries, and tools are used?
3. **Key Files**: Identify the most important files and their purposes
4. **Architecture**: How is the project structured?
5. **Main Features**: What are the core functionalities?

Files to analyze ({total_files} total files, showing first {shown_files}):
{file_blocks}

Please provide a detailed analysis in a structured format that explains:
- The overall purpose and goal of this project
- The main technologies and frameworks used
- The most important files and what they do
- The project's architecture and organization
- Key features and functionality

Be specific and technical, but also accessible to developers who are new to this codebase.
"""

    ENHANCED_INSTRUCTIONS = """

ENHANCED ANALYSIS MODE:
- Provide deeper insights into code patterns and best practices
- Identify potential improvements or architectural concerns
- Analyze the development workflow and tooling setup
- Comment on code quality and maintainability
- Suggest areas for optimization or refactoring

Keep your response comprehensive and well-structured (aim for 800-1200 words).
"""

    STANDARD_LENGTH_INSTRUCTION = "\nKeep your response concise but informative (aim for 500-700 words).\n"

    def __init__(self, config: GenerationConfig):
        self.config = config
        limits = Constants.PROMPT_LIMITS['advanced' if config.tier == 'advanced' else 'standard']
        self.max_files = limits['max_files']
        self.max_chars = limits['max_chars']

    def select_files(self, files: Sequence[FileRecord]) -> List[FileRecord]:
        eligible = [f for f in files if f.size < Constants.PROMPT_MAX_FILE_BYTES]
        return eligible[:self.max_files]

    def format_file_block(self, file: FileRecord) -> str:
        """Labeled block for one file, content cut to the tier budget."""
        content = file.content[:self.max_chars]
        marker = Constants.TRUNCATION_MARKER if len(file.content) > self.max_chars else ''
        return f"File: {file.path}\nContent:\n{content}{marker}\n---\n"

    def build(self, files: Sequence[FileRecord]) -> str:
        selected = self.select_files(files)
        file_blocks = "\n".join(self.format_file_block(f) for f in selected)

        prompt = self.BASE_INSTRUCTIONS.format(
            total_files=len(files),
            shown_files=len(selected),
            file_blocks=file_blocks,
        )

        if self.config.is_enhanced:
            prompt += self.ENHANCED_INSTRUCTIONS
        else:
            prompt += self.STANDARD_LENGTH_INSTRUCTION

        logger.debug(f"Built prompt with {len(selected)} files ({len(prompt)} characters)")
        return prompt


def resolve_provider_model(model: str) -> str:
    """Map a logical model name to the provider's model name."""
    return Constants.MODEL_NAME_MAP.get(model.strip().lower(), Constants.DEFAULT_PROVIDER_MODEL)


def generation_params_for(config: GenerationConfig) -> Dict[str, Any]:
    """Sampling and length parameters; enhanced values only for advanced tier with features on."""
    tier = 'advanced' if config.is_enhanced else 'standard'
    return dict(Constants.GENERATION_CONFIGS[tier])


class GeminiGateway:
    """
    Thin wrapper around the Gemini OpenAI-compatible chat endpoint.

    One call to `generate` issues exactly one request. The client's own retry
    loop is disabled; retrying belongs to AnalysisOrchestrator.

    Attributes:
        config (GenerationConfig): Run configuration (model, key, tier)
        provider_model (str): Concrete model name sent to the provider
        generation_params (Dict[str, Any]): Sampling and length parameters
        client: OpenAI-compatible client exposing chat.completions.create
    """

    def __init__(self, config: GenerationConfig, client: Any = None):
        self.config = config
        self.provider_model = resolve_provider_model(config.model)
        self.generation_params = generation_params_for(config)

        if client is None:
            base_url = config.base_url or Constants.GEMINI_BASE_URL
            try:
                client = openai.OpenAI(api_key=config.api_key, base_url=base_url, max_retries=0)
            except Exception as e:
                logger.error(f"Failed to initialize AI client: {e}")
                raise ConfigurationError(f"Cannot initialize AI client for {config.model}: {e}") from e
            logger.info(f"Initialized AI client for {self.provider_model} with base_url: {base_url}")

        self.client = client

    def generate(self, prompt: str) -> str:
        """
        Send the prompt and return the model's text.

        Raises:
            GatewayError: On any transport or provider failure, carrying the
                provider's raw message
        """
        params = self.generation_params
        logger.debug(f"Calling {self.provider_model} with {len(prompt)} prompt characters")

        try:
            response = self.client.chat.completions.create(
                model=self.provider_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=params['temperature'],
                top_p=params['top_p'],
                max_tokens=params['max_output_tokens'],
                extra_body={'top_k': params['top_k']},
            )
        except Exception as e:
            logger.warning(f"AI model call failed: {e}")
            raise GatewayError(str(e)) from e

        if response.choices and response.choices[0].message.content:
            logger.info(f"AI model {self.provider_model} responded successfully")
            return response.choices[0].message.content

        raise GatewayError("AI model returned empty response")


# Provider error-message parsing lives only in the functions below.
QUOTA_MARKERS = ('exceeded your current quota', 'quotafailure')
RETRY_DELAY_PATTERN = re.compile(r"""retrydelay['"]?\s*[:=]\s*['"]?(\d+)s""", re.IGNORECASE)


def extract_retry_after(message: str) -> Optional[int]:
    """Parse `retryDelay: "<N>s"` (any quoting, any case) into seconds."""
    match = RETRY_DELAY_PATTERN.search(message)
    return int(match.group(1)) if match else None


def _error_text(error: Any) -> str:
    if error is None:
        return ''
    if isinstance(error, GatewayError):
        return error.raw_message or ''
    return str(error)


def classify_error(error: Any) -> ErrorClassification:
    """
    Classify a provider failure from its message text.

    Matching is case-insensitive and the first rule that matches wins:
    quota exceeded, rate limit (429 plus rate_limit_exceeded), invalid key
    (401 or an API-key marker), bad or oversized content (400 or "content"),
    model not found, and finally unknown.

    Args:
        error: An exception, a GatewayError, or a raw message string

    Returns:
        ErrorClassification: Never raises; unparseable input becomes `unknown`
    """
    try:
        raw_message = _error_text(error)
    except Exception:
        raw_message = ''
    text = raw_message.lower()

    if any(marker in text for marker in QUOTA_MARKERS):
        classification = _classify_quota_error(text)
    elif '429' in text and 'rate_limit_exceeded' in text:
        classification = _classify_rate_limit_error(text)
    elif '401' in text or 'api_key' in text or 'api key not valid' in text:
        classification = ErrorClassification(
            kind=ErrorKind.INVALID_KEY,
            message="Invalid or missing API key",
            suggestions=[
                "Check that your API key is correct",
                "Ensure your API key has the necessary permissions",
                f"Get a new API key at: {Constants.API_KEY_URL}",
            ],
        )
    elif '400' in text or 'content' in text:
        classification = ErrorClassification(
            kind=ErrorKind.CONTENT_TOO_LARGE,
            message="Request content is too large or malformed",
            suggestions=[
                "Try analyzing a smaller repository",
                "Reduce the number of files being analyzed",
                "Use a different model that supports larger inputs",
            ],
        )
    elif 'model' in text and 'not found' in text:
        classification = ErrorClassification(
            kind=ErrorKind.MODEL_UNAVAILABLE,
            message="The selected model is not available",
            suggestions=[
                f"Try a different model like {Constants.DEFAULT_MODEL}",
                "Check if the model name is correct",
                "Some models may not be available in your region",
            ],
        )
    else:
        classification = ErrorClassification(
            kind=ErrorKind.UNKNOWN,
            message=raw_message or "Unknown error",
            suggestions=[
                "Try again in a few minutes",
                "Check your internet connection",
                "Contact support if the issue persists",
            ],
        )

    retry_after = extract_retry_after(text)
    if retry_after is not None:
        classification.retry_after = retry_after
        classification.suggestions.append(f"Suggested retry time: {retry_after} seconds")

    return classification


def _classify_quota_error(text: str) -> ErrorClassification:
    suggestions = []
    message = "You have exceeded your API quota limits"

    if 'free_tier' in text or 'freetier' in text:
        message = "You have exceeded your free tier quota limits"
        suggestions.append("You're using the FREE tier of Gemini API")

        if 'input_token_count' in text:
            suggestions.append("Too many input tokens used (text sent to AI)")
            suggestions.append("Try analyzing smaller files or fewer files at once")
        elif 'requests' in text or 'perminute' in text or 'perday' in text:
            suggestions.append("Too many requests made to the API")
            if 'perminute' in text:
                suggestions.append(
                    f"Free tier: {Constants.FREE_TIER_LIMITS['requests_per_minute']} requests per minute limit"
                )
                suggestions.append("Wait 1-2 minutes before trying again")
            if 'perday' in text:
                suggestions.append(
                    f"Free tier: {Constants.FREE_TIER_LIMITS['requests_per_day']:,} requests per day limit"
                )
                suggestions.append("Wait until tomorrow or upgrade to paid plan")

        suggestions.append("Consider upgrading to a paid plan for higher limits")
        suggestions.append(f"Billing info: {Constants.BILLING_URL}")
    else:
        suggestions.append("Check your billing and payment details")
        suggestions.append("You may need to increase your quota limits")

    return ErrorClassification(kind=ErrorKind.QUOTA_EXCEEDED, message=message, suggestions=suggestions)


def _classify_rate_limit_error(text: str) -> ErrorClassification:
    suggestions = []
    message = "Rate limit exceeded"

    if 'requests per minute' in text:
        message = "Too many requests per minute"
        suggestions.append("You're making requests too quickly")
        suggestions.append("Wait 1-2 minutes before trying again")

    if 'quota metric' in text:
        suggestions.append("API quota limits reached")
        suggestions.append(f"Try using a lighter model like {Constants.DEFAULT_MODEL}")

    suggestions.append("The system will automatically retry with delays")

    return ErrorClassification(kind=ErrorKind.RATE_LIMIT, message=message, suggestions=suggestions)


def display_error(classification: ErrorClassification, output: Callable[..., None] = print) -> None:
    """Print a classified failure with numbered suggestions."""
    output(f"\nERROR: {classification.message}")

    if classification.kind is ErrorKind.QUOTA_EXCEEDED:
        output("\nQUOTA EXCEEDED - Here's what happened:")
    elif classification.kind is ErrorKind.RATE_LIMIT:
        output("\nRATE LIMITED - Here's what happened:")
    else:
        output("\nERROR DETAILS:")

    for index, suggestion in enumerate(classification.suggestions, start=1):
        output(f"   {index}. {suggestion}")

    if classification.retry_after:
        output(f"\nRecommended wait time: {classification.retry_after} seconds")

    output(f"\nNeed help? Visit: {Constants.RATE_LIMIT_DOCS_URL}")


class Prompter:
    """
    Capability for asking the user a question and waiting for the answer.

    The orchestrator and CLI depend only on this interface; the terminal
    implementation below uses rich, tests use a scripted double.
    """

    def ask(self, question: str, default: Optional[str] = None) -> str:
        raise NotImplementedError

    def choose(self, question: str, choices: Sequence[Tuple[str, str]], default: Optional[str] = None) -> str:
        raise NotImplementedError

    def confirm(self, question: str, default: bool = True) -> bool:
        raise NotImplementedError

    def secret(self, question: str) -> str:
        raise NotImplementedError


class TerminalPrompter(Prompter):
    """Interactive terminal prompts backed by rich.prompt."""

    def ask(self, question: str, default: Optional[str] = None) -> str:
        if default is None:
            return Prompt.ask(question)
        return Prompt.ask(question, default=default)

    def choose(self, question: str, choices: Sequence[Tuple[str, str]], default: Optional[str] = None) -> str:
        print(question)
        default_index = None
        for index, (label, value) in enumerate(choices, start=1):
            print(f"  {index}. {label}")
            if value == default:
                default_index = str(index)

        options = [str(i) for i in range(1, len(choices) + 1)]
        if default_index is None:
            answer = Prompt.ask("Select an option", choices=options)
        else:
            answer = Prompt.ask("Select an option", choices=options, default=default_index)
        return choices[int(answer) - 1][1]

    def confirm(self, question: str, default: bool = True) -> bool:
        return Confirm.ask(question, default=default)

    def secret(self, question: str) -> str:
        return Prompt.ask(question, password=True)


def detect_tech_stack(files: Sequence[FileRecord]) -> List[str]:
    """Recognize technologies from file paths and extensions alone."""
    rules = [
        ('Node.js/JavaScript', lambda f: 'package.json' in f.path),
        ('React', lambda f: f.extension in ('.tsx', '.jsx')),
        ('TypeScript', lambda f: f.extension == '.ts'),
        ('Next.js', lambda f: 'next.config' in f.path),
        ('Tailwind CSS', lambda f: 'tailwind' in f.path),
        ('Python', lambda f: f.extension == '.py'),
        ('Go', lambda f: f.extension == '.go'),
    ]
    return [name for name, matches in rules if any(matches(f) for f in files)]


def guess_project_type(files: Sequence[FileRecord], tech_stack: Sequence[str],
                       root_names: Collection[str] = ()) -> str:
    """
    Single project-type label, by fixed priority.

    A Go label needs a go.mod module file, the same way the Node.js label
    needs package.json; loose .go sources alone stay "software". go.mod is
    looked up in `root_names` too, since the scan cap may leave it out of
    `files`.

    Args:
        files (Sequence[FileRecord]): Scanned files
        tech_stack (Sequence[str]): Result of detect_tech_stack
        root_names (Collection[str]): Entry names at the scan root

    Returns:
        str: Label such as "React application", or "software"
    """
    if 'Next.js' in tech_stack:
        return "Next.js web application"
    if 'React' in tech_stack:
        return "React application"
    if any('package.json' in f.path for f in files):
        return "Node.js application"
    if 'Python' in tech_stack:
        return "Python application"
    has_go_module = 'go.mod' in root_names or any(os.path.basename(f.path) == 'go.mod' for f in files)
    if 'Go' in tech_stack and has_go_module:
        return "Go application"
    return "software"


def count_lines(content: str) -> int:
    """Newline-delimited segments; an empty file counts as one line."""
    return len(content.split('\n'))


def analyze_fallback(files: Sequence[FileRecord], root_names: Collection[str] = ()) -> str:
    """
    Produce a deterministic, offline summary from file statistics.

    Used when the AI path is abandoned. No network access; the same files
    always give the same text.

    Args:
        files (Sequence[FileRecord]): Scanned files
        root_names (Collection[str]): Entry names at the scan root

    Returns:
        str: Markdown report section noting that no AI insight was used
    """
    extensions: Dict[str, int] = {}
    directories: List[str] = []
    total_lines = 0

    for f in files:
        ext = f.extension or 'unknown'
        extensions[ext] = extensions.get(ext, 0) + 1

        top_level = f.path.split('/')[0]
        if top_level != f.path and top_level not in directories:
            directories.append(top_level)

        total_lines += count_lines(f.content)

    tech_stack = detect_tech_stack(files)
    project_type = guess_project_type(files, tech_stack, root_names)

    # Most common first; ties keep first-seen order
    distribution = sorted(extensions.items(), key=lambda item: -item[1])[:10]

    tech_lines = "\n".join(f"- {tech}" for tech in tech_stack) or "- Unable to determine main technologies"
    distribution_lines = "\n".join(f"- {ext}: {count} files" for ext, count in distribution)
    directory_lines = "\n".join(f"- {d}/" for d in directories[:10])
    main_types = ", ".join(list(extensions)[:5])

    return f"""
## Basic Code Analysis Report

**Project Overview:**
This project contains {len(files)} files with approximately {total_lines:,} lines of code across {len(directories)} main directories.

**Technology Stack Detected:**
{tech_lines}

**File Type Distribution:**
{distribution_lines}

**Project Structure:**
The project is organized into {len(directories)} main directories:
{directory_lines}

**Key Observations:**
- Total files analyzed: {len(files)}
- Estimated lines of code: {total_lines:,}
- Main file types: {main_types}
- Project appears to be a {project_type} project

**Note:** This is a basic analysis without AI insights. For detailed AI-powered analysis including architecture insights, feature detection, and code quality assessment, please ensure your Gemini API key is valid and try again when rate limits reset.
"""


class RunPhase(str, Enum):
    """
    Phases of one analysis run.

    SUCCEEDED, FELL_BACK and USER_EXITED are terminal; every other phase has a
    handler on AnalysisOrchestrator that returns the next phase.
    """
    SCANNING = 'scanning'
    PROMPTING = 'prompting'
    CALLING = 'calling'
    CLASSIFYING = 'classifying'
    AUTO_RETRYING = 'auto_retrying'
    AWAITING_USER_CHOICE = 'awaiting_user_choice'
    RETRYING = 'retrying'
    FALLING_BACK = 'falling_back'
    SUCCEEDED = 'succeeded'
    FELL_BACK = 'fell_back'
    USER_EXITED = 'user_exited'


TERMINAL_PHASES = frozenset({RunPhase.SUCCEEDED, RunPhase.FELL_BACK, RunPhase.USER_EXITED})


@dataclass
class RunState:
    """Everything one analysis run carries between transitions."""
    phase: RunPhase = RunPhase.SCANNING
    files: List[FileRecord] = field(default_factory=list)
    prompt: str = ''
    calls: int = 0
    auto_retries: int = 0
    cycles: int = 0
    error: Optional[GatewayError] = None
    classification: Optional[ErrorClassification] = None
    wait_seconds: int = 0
    analysis: Optional[str] = None
    model_used: str = ''
    exit_reason: str = ''


@dataclass
class AnalysisOutcome:
    """
    Result of a completed run, ready for report assembly.

    Attributes:
        files (List[FileRecord]): Files from the last scan
        analysis (str): AI text or fallback text
        model_used (str): Logical model name or the fallback marker
        model_tier (str): 'standard' or 'advanced'
        used_fallback (bool): True when the offline analyzer produced the text
    """
    files: List[FileRecord]
    analysis: str
    model_used: str
    model_tier: str
    used_fallback: bool


class AnalysisOrchestrator:
    """
    Drives one analysis run: scan, prompt, call, and recover from failures.

    The run is an explicit state machine over a single RunState, advanced by a
    loop in `run`. Each handler performs one phase and returns the next phase.

    Recovery rules:
        - rate_limit failures retry automatically, up to AUTO_RETRY_BUDGET
          times, waiting 2s then 4s
        - quota_exceeded / rate_limit (budget spent): the user picks basic
          analysis, wait-and-retry (full re-scan), or exit
        - invalid_key: the user may enter a new key and the call is repeated
        - anything else is fatal and raised as AnalysisError

    Attributes:
        config (GenerationConfig): Run configuration; api_key may be replaced
        scanner (RepositoryScanner): Source of FileRecords
        prompter (Prompter): Interactive question capability
        gateway_factory: Builds a gateway from the config
        sleep: Blocking delay function, seconds
        output: Line printer for progress messages
    """

    def __init__(self, config: GenerationConfig, scanner: RepositoryScanner, prompter: Prompter,
                 gateway_factory: Callable[[GenerationConfig], Any] = GeminiGateway,
                 sleep: Callable[[float], None] = time.sleep,
                 output: Callable[..., None] = print,
                 max_retry_wait: int = Constants.MAX_RETRY_WAIT):
        self.config = config
        self.scanner = scanner
        self.prompter = prompter
        self.gateway_factory = gateway_factory
        self.sleep = sleep
        self.output = output
        self.max_retry_wait = max_retry_wait
        self._gateway = None

        self._handlers = {
            RunPhase.SCANNING: self._scan,
            RunPhase.PROMPTING: self._build_prompt,
            RunPhase.CALLING: self._call,
            RunPhase.CLASSIFYING: self._classify,
            RunPhase.AUTO_RETRYING: self._auto_retry,
            RunPhase.AWAITING_USER_CHOICE: self._await_user_choice,
            RunPhase.RETRYING: self._retry,
            RunPhase.FALLING_BACK: self._fall_back,
        }

    def run(self) -> AnalysisOutcome:
        """
        Run until a terminal phase is reached.

        Returns:
            AnalysisOutcome: Files plus either AI text or fallback text

        Raises:
            UserExitError: The user chose to stop (clean cancellation)
            AnalysisError: A failure with no recovery path
            RepositoryScanError: The scan root could not be listed
        """
        state = RunState()

        while state.phase not in TERMINAL_PHASES:
            previous = state.phase
            state.phase = self._handlers[previous](state)
            logger.debug(f"Run phase {previous.value} -> {state.phase.value}")

        if state.phase is RunPhase.USER_EXITED:
            logger.info(f"Run ended by user: {state.exit_reason}")
            raise UserExitError(state.exit_reason)

        used_fallback = state.phase is RunPhase.FELL_BACK
        return AnalysisOutcome(
            files=state.files,
            analysis=state.analysis,
            model_used=state.model_used,
            model_tier='standard' if used_fallback else self.config.tier,
            used_fallback=used_fallback,
        )

    def _get_gateway(self):
        if self._gateway is None:
            self._gateway = self.gateway_factory(self.config)
        return self._gateway

    def _scan(self, state: RunState) -> RunPhase:
        self.output("Scanning repository...")
        state.files = self.scanner.scan()
        self.output(f"Found {len(state.files)} files. Analyzing with {self.config.model}...")
        check_quota_limits(state.files, self.config.model, output=self.output)
        return RunPhase.PROMPTING

    def _build_prompt(self, state: RunState) -> RunPhase:
        state.prompt = PromptBuilder(self.config).build(state.files)
        mode = " (advanced mode)" if self.config.advanced_features else ""
        self.output(f"Generating AI analysis{mode}...")
        return RunPhase.CALLING

    def _call(self, state: RunState) -> RunPhase:
        state.calls += 1
        try:
            state.analysis = self._get_gateway().generate(state.prompt)
        except GatewayError as e:
            state.error = e
            return RunPhase.CLASSIFYING

        state.model_used = self.config.model
        logger.info(f"Analysis generated after {state.calls} call(s)")
        return RunPhase.SUCCEEDED

    def _classify(self, state: RunState) -> RunPhase:
        classification = classify_error(state.error)
        state.classification = classification
        logger.error(f"AI call failed ({classification.kind.value}): {classification.message}")

        if classification.kind is ErrorKind.RATE_LIMIT and state.auto_retries < Constants.AUTO_RETRY_BUDGET:
            return RunPhase.AUTO_RETRYING

        display_error(classification, output=self.output)

        if classification.kind in (ErrorKind.QUOTA_EXCEEDED, ErrorKind.RATE_LIMIT, ErrorKind.INVALID_KEY):
            return RunPhase.AWAITING_USER_CHOICE

        raise AnalysisError(classification) from state.error

    def _auto_retry(self, state: RunState) -> RunPhase:
        state.auto_retries += 1
        delay = Constants.AUTO_RETRY_BASE ** state.auto_retries
        self.output(
            f"Rate limited. Retrying in {delay}s... ({state.auto_retries}/{Constants.AUTO_RETRY_BUDGET})"
        )
        logger.warning(f"Rate limited, automatic retry {state.auto_retries} in {delay}s")
        self.sleep(delay)
        return RunPhase.CALLING

    def _await_user_choice(self, state: RunState) -> RunPhase:
        classification = state.classification

        if classification.kind is ErrorKind.INVALID_KEY:
            if not self.prompter.confirm("Would you like to enter a new API key?", default=True):
                state.exit_reason = "User chose not to provide new API key"
                return RunPhase.USER_EXITED

            new_key = self.prompter.secret("Enter your new Gemini API key").strip()
            if not new_key:
                state.exit_reason = "No API key provided"
                return RunPhase.USER_EXITED

            self.config.api_key = new_key
            self._gateway = None
            state.auto_retries = 0
            self.output("\nRetrying with new API key...")
            logger.info("API key replaced, retrying")
            return RunPhase.CALLING

        action = self.prompter.choose(
            "What would you like to do?",
            [
                ("Generate basic analysis without AI", 'fallback'),
                ("Wait and retry (recommended if quota will reset soon)", 'retry'),
                ("Exit and try again later", 'exit'),
            ],
            default='fallback',
        )
        logger.info(f"User chose '{action}' after {classification.kind.value}")

        if action == 'fallback':
            return RunPhase.FALLING_BACK
        if action == 'retry':
            wait = classification.retry_after or Constants.DEFAULT_RETRY_WAIT
            state.wait_seconds = min(wait, self.max_retry_wait)
            return RunPhase.RETRYING

        state.exit_reason = "User chose to exit"
        return RunPhase.USER_EXITED

    def _retry(self, state: RunState) -> RunPhase:
        self.output(f"Waiting {state.wait_seconds} seconds before retry...")
        for remaining in range(state.wait_seconds, 0, -1):
            self.output(f"\rRetrying in {remaining} seconds... ", end='', flush=True)
            self.sleep(1)
        self.output("\nRetrying analysis...")

        state.cycles += 1
        state.auto_retries = 0
        state.error = None
        state.classification = None
        return RunPhase.SCANNING

    def _fall_back(self, state: RunState) -> RunPhase:
        self.output("\nSwitching to basic analysis mode...")
        state.analysis = analyze_fallback(state.files, self.scanner.root_names)
        state.model_used = Constants.FALLBACK_MODEL_NAME
        self.output("This was a basic analysis without AI. For AI insights, try again later.")
        return RunPhase.FELL_BACK


def _read_manifest(files: Sequence[FileRecord]) -> Tuple[Optional[str], List[str]]:
    """
    Project name and dependency names from the first parseable manifest.

    package.json wins over pyproject.toml; parse errors are ignored.
    """
    package_json = next((f for f in files if 'package.json' in f.path), None)
    if package_json is not None:
        try:
            data = json.loads(package_json.content)
            deps = {**(data.get('dependencies') or {}), **(data.get('devDependencies') or {})}
            return data.get('name'), list(deps)
        except (ValueError, AttributeError, TypeError) as e:
            logger.debug(f"Ignoring unparseable {package_json.path}: {e}")

    pyproject = next((f for f in files if os.path.basename(f.path) == 'pyproject.toml'), None)
    if pyproject is not None:
        try:
            project = toml.loads(pyproject.content).get('project', {})
            deps = [re.split(r'[\s<>=!~;\[(]', dep, maxsplit=1)[0] for dep in project.get('dependencies', [])]
            return project.get('name'), [d for d in deps if d]
        except (toml.TomlDecodeError, AttributeError, TypeError) as e:
            logger.debug(f"Ignoring unparseable {pyproject.path}: {e}")

    return None, []


def describe_file_purpose(file_path: str) -> str:
    """
    Short purpose label for a key file, from its base name.

    Args:
        file_path (str): Relative path of the file

    Returns:
        str: Label such as "Main entry point" or "Core project file"
    """
    file_name = os.path.basename(file_path).lower()

    if 'package.json' in file_name or 'pyproject' in file_name:
        return "Project configuration and dependencies"
    if 'readme' in file_name:
        return "Project documentation"
    if 'index' in file_name or file_name.startswith('main.'):
        return "Main entry point"
    if 'app' in file_name:
        return "Application main file"
    if 'config' in file_name:
        return "Configuration file"
    if 'route' in file_name:
        return "API route handler"
    if 'component' in file_name:
        return "React component"
    return "Core project file"


def identify_key_files(files: Sequence[FileRecord]) -> List[Dict[str, str]]:
    """
    Pick well-known entry and configuration files, in scan order.

    Args:
        files (Sequence[FileRecord]): Scanned files

    Returns:
        List[Dict[str, str]]: At most MAX_KEY_FILES entries with path,
        purpose and importance
    """
    key_names = [name.lower() for name in Constants.KEY_FILE_NAMES]
    key_files = []
    for f in files:
        file_name = os.path.basename(f.path).lower()
        if any(name in file_name for name in key_names):
            key_files.append({'path': f.path, 'purpose': describe_file_purpose(f.path), 'importance': 'high'})
    return key_files[:Constants.MAX_KEY_FILES]


def extract_description(analysis: str) -> str:
    """First analysis line about the project's purpose, markdown markers stripped."""
    for line in analysis.split('\n'):
        lowered = line.lower()
        if 'purpose' in lowered or 'project' in lowered or 'does' in lowered:
            description = re.sub(r'[#*-]', '', line).strip()
            if description:
                return description
    return "AI-analyzed project"


def build_structure_text(files: Sequence[FileRecord]) -> str:
    """Directory listing, first-seen order, at most 5 names per directory."""
    structure: Dict[str, List[str]] = {}
    for f in files:
        directory, _, name = f.path.rpartition('/')
        structure.setdefault(directory or '.', []).append(name)

    lines = []
    for directory, names in structure.items():
        if directory != '.':
            lines.append(f"{directory}/")
        lines.extend(f"  {name}" for name in names[:5])
        if len(names) > 5:
            lines.append(f"  ... and {len(names) - 5} more files")
    return "\n".join(lines) + "\n" if lines else ""


def generate_report(files: Sequence[FileRecord], analysis: str, model_used: str,
                    model_tier: str = 'standard') -> ProjectReport:
    """
    Assemble the structured report from scanned files and analysis text.

    Args:
        files (Sequence[FileRecord]): Everything the scanner returned
        analysis (str): AI text or fallback text, never a mix
        model_used (str): Logical model name or the fallback marker
        model_tier (str): 'standard' or 'advanced'

    Returns:
        ProjectReport: Immutable report for persistence and serving
    """
    project_name, dependencies = _read_manifest(files)

    return ProjectReport(
        project_name=project_name or "Unknown Project",
        description=extract_description(analysis),
        tech_stack=dependencies[:Constants.MAX_TECH_STACK],
        key_files=identify_key_files(files),
        structure=build_structure_text(files),
        analysis=analysis,
        total_files=len(files),
        total_lines=sum(count_lines(f.content) for f in files),
        generated_at=datetime.now().isoformat(),
        model_used=model_used,
        model_tier=model_tier,
    )


def render_markdown(report: ProjectReport) -> str:
    """
    Render the report as a Markdown document.

    Args:
        report (ProjectReport): Report to render

    Returns:
        str: Markdown text written to report.md
    """
    tech_lines = "\n".join(f"- {tech}" for tech in report.tech_stack)
    key_file_lines = "\n".join(f"- **{kf['path']}**: {kf['purpose']}" for kf in report.key_files)
    try:
        generated = datetime.fromisoformat(report.generated_at).strftime('%Y-%m-%d %H:%M:%S')
    except ValueError:
        generated = report.generated_at

    return f"""# {report.project_name}

## Overview
{report.description}

## Technology Stack
{tech_lines}

## Key Files
{key_file_lines}

## Project Structure
```
{report.structure}
```

## AI Analysis
{report.analysis}

## Statistics
- Total Files: {report.total_files}
- Total Lines: {report.total_lines}
- Model Used: {report.model_used} ({report.model_tier} mode)
- Generated: {generated}
"""


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - Vibe Code Analysis</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 1200px; margin: 0 auto; padding: 20px; line-height: 1.6; }}
        h1 {{ color: #2563eb; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px; }}
        h2 {{ color: #374151; margin-top: 30px; }}
        code {{ background: #f3f4f6; padding: 2px 6px; border-radius: 4px; }}
        pre {{ background: #f9fafb; padding: 15px; border-radius: 8px; overflow-x: auto; }}
        .model-info {{ background: #f0fdf4; border: 1px solid #bbf7d0; padding: 10px; border-radius: 6px; margin: 10px 0; }}
    </style>
</head>
<body>
    <div class="model-info">
        <strong>Analysis powered by:</strong> {model_used} ({model_tier} mode)
    </div>
    {body}
</body>
</html>"""


def render_html(report: ProjectReport) -> str:
    """Render the Markdown report into the standalone styled HTML page."""
    body = markdown.markdown(render_markdown(report), extensions=['fenced_code', 'tables'])
    return HTML_TEMPLATE.format(
        title=html.escape(report.project_name),
        model_used=html.escape(report.model_used),
        model_tier=html.escape(report.model_tier),
        body=body,
    )


def save_report(report: ProjectReport, output_dir: os.PathLike) -> Path:
    """
    Write report.json, report.md and report.html, replacing earlier ones.

    Raises:
        ReportError: If the directory or any file cannot be written
    """
    output_path = Path(output_dir)
    try:
        output_path.mkdir(parents=True, exist_ok=True)
        (output_path / 'report.json').write_text(
            json.dumps(report.to_dict(), indent=2, ensure_ascii=False), encoding='utf-8'
        )
        (output_path / 'report.md').write_text(render_markdown(report), encoding='utf-8')
        (output_path / 'report.html').write_text(render_html(report), encoding='utf-8')
    except OSError as e:
        logger.error(f"Failed to save report to {output_path}: {e}")
        raise ReportError(f"Could not save report to {output_path}: {e}") from e

    logger.info(f"Report saved to: {output_path}")
    return output_path


def load_report(output_dir: os.PathLike) -> ProjectReport:
    """
    Read report.json from an output directory.

    Raises:
        ReportError: If the file is missing, unreadable or incomplete
    """
    report_path = Path(output_dir) / 'report.json'
    try:
        data = json.loads(report_path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        raise ReportError(f"Failed to load report {report_path}: {e}") from e
    return ProjectReport.from_dict(data)


class ReportRequestHandler(BaseHTTPRequestHandler):
    """Serves the saved report files from one output directory."""

    ROUTES = {
        '/': ('report.html', 'text/html; charset=utf-8'),
        '/report.html': ('report.html', 'text/html; charset=utf-8'),
        '/api/report': ('report.json', 'application/json; charset=utf-8'),
        '/report.json': ('report.json', 'application/json; charset=utf-8'),
        '/report.md': ('report.md', 'text/markdown; charset=utf-8'),
    }

    def __init__(self, *args, output_dir: Path, **kwargs):
        self.output_dir = output_dir
        super().__init__(*args, **kwargs)

    def do_GET(self):
        route = self.ROUTES.get(self.path.split('?', 1)[0])
        if route is None:
            self.send_error(404, "Not Found")
            return

        filename, content_type = route
        try:
            body = (self.output_dir / filename).read_bytes()
        except OSError as e:
            logger.error(f"Cannot read {filename}: {e}")
            self.send_error(500, f"Cannot read {filename}")
            return

        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} - {format % args}")


def create_report_server(output_dir: os.PathLike, port: int, host: str = '127.0.0.1') -> HTTPServer:
    """
    Bind an HTTP server serving the reports in `output_dir`.

    Args:
        output_dir (os.PathLike): Directory holding report.json/.md/.html
        port (int): Port to bind; 0 picks a free one
        host (str): Interface to bind

    Returns:
        HTTPServer: Bound but not yet serving
    """
    handler = partial(ReportRequestHandler, output_dir=Path(output_dir))
    return HTTPServer((host, port), handler)


def is_port_available(port: int, host: str = '127.0.0.1') -> bool:
    """Return True if `port` can be bound on `host` right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(start: int, attempts: int = Constants.PORT_SEARCH_ATTEMPTS) -> Optional[int]:
    """
    Probe ports upwards from `start`.

    Returns:
        int, optional: First free port, or None after `attempts` tries
    """
    for port in range(start, min(start + attempts, Constants.MAX_PORT + 1)):
        if is_port_available(port):
            return port
    return None


def parse_port(value: Any) -> int:
    """
    Validate a port number from the CLI or config.

    Raises:
        ConfigurationError: If the value is not an integer in 1024-65535
    """
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid port number: {value}") from None
    if not Constants.MIN_PORT <= port <= Constants.MAX_PORT:
        raise ConfigurationError(
            f"Invalid port number {port}. Please use a port between {Constants.MIN_PORT} and {Constants.MAX_PORT}."
        )
    return port


def resolve_port(port: int, prompter: Prompter) -> Optional[int]:
    """Return a free port, asking the user when the requested one is taken."""
    if is_port_available(port):
        return port

    print(f"Port {port} is already in use.")
    suggested = find_available_port(port + 1)
    choices = []
    if suggested is not None:
        choices.append((f"Use port {suggested}", 'suggested'))
    choices.append(("Enter a different port", 'custom'))
    choices.append(("Exit", 'exit'))

    action = prompter.choose("What would you like to do?", choices, default=choices[0][1])
    if action == 'suggested':
        return suggested
    if action == 'custom':
        custom = parse_port(prompter.ask("Port number", default=str(Constants.DEFAULT_PORT)))
        if is_port_available(custom):
            return custom
        print(f"Port {custom} is also in use.")
    return None


def serve_report(output_dir: os.PathLike, port: int, prompter: Prompter) -> None:
    """Serve an existing report until interrupted."""
    output_path = Path(output_dir)
    if not (output_path / 'report.json').exists():
        print("No reports found to serve.")
        print(f"Looking for: {output_path / 'report.json'}")
        print(f"Run '{Constants.APP_NAME}' to generate reports first!")
        return

    report = load_report(output_path)
    chosen_port = resolve_port(port, prompter)
    if chosen_port is None:
        print("Server not started.")
        return

    server = create_report_server(output_path, chosen_port)
    url = f"http://localhost:{chosen_port}"
    print(f"\nServing report for: {report.project_name}")
    print(f"Dashboard: {url}")
    print(f"JSON API:  {url}/api/report")
    print("Press Ctrl+C to stop the server")
    logger.info(f"Report server listening on {url}")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down report server...")
    finally:
        server.server_close()


def format_file_size(size: int) -> str:
    """Human-readable size in B, KB, MB or GB, e.g. "1.5 KB"."""
    units = ['B', 'KB', 'MB', 'GB']
    value = float(max(size, 0))
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def list_reports(output_dir: os.PathLike) -> int:
    """
    Print the generated report files.

    Returns:
        int: Number of files found
    """
    output_path = Path(output_dir)
    if not output_path.exists():
        print("No reports found.")
        print(f"Looking for: {output_path}")
        print(f"Run '{Constants.APP_NAME}' to generate your first report!")
        return 0

    entries = sorted(p for p in output_path.iterdir() if p.is_file())
    if not entries:
        print("Output directory exists but is empty.")
        print(f"Run '{Constants.APP_NAME}' to generate reports!")
        return 0

    print("Generated Reports")
    print(f"Location: {output_path}\n")
    for entry in entries:
        stats = entry.stat()
        modified = datetime.fromtimestamp(stats.st_mtime).strftime('%Y-%m-%d %H:%M:%S')
        print(entry.name)
        print(f"   Size: {format_file_size(stats.st_size)}")
        print(f"   Modified: {modified}")
        print()

    print(f"Found {len(entries)} report files")
    print(f"Use '{Constants.APP_NAME} clear' to delete all reports")
    return len(entries)


def clear_reports(output_dir: os.PathLike, force: bool, prompter: Prompter) -> bool:
    """
    Delete the output directory after confirmation.

    Returns:
        bool: True if the directory was removed
    """
    output_path = Path(output_dir)
    if not output_path.exists():
        print("No reports found to clear.")
        print(f"Looking for: {output_path}")
        return False

    entries = sorted(output_path.iterdir())
    if not entries:
        print("Output directory is already empty.")
        return False

    print("Clear Reports")
    print(f"Found {len(entries)} files in {output_path.name}/\n")
    print("Files to be deleted:")
    for entry in entries:
        size = entry.stat().st_size if entry.is_file() else 0
        print(f"  - {entry.name} ({format_file_size(size)})")
    print()

    if not force and not prompter.confirm("Are you sure you want to delete all reports?", default=False):
        print("Operation cancelled.")
        return False

    shutil.rmtree(output_path)
    logger.info(f"Removed report directory {output_path}")
    print("All reports cleared successfully!")
    print(f"Deleted {len(entries)} files")
    return True


def show_quota_help() -> None:
    limits = Constants.FREE_TIER_LIMITS
    print("Understanding Gemini API Quotas\n")

    print("Free Tier Limits:")
    print(f"   - {limits['requests_per_minute']} requests per minute")
    print(f"   - {limits['requests_per_day']:,} requests per day")
    print(f"   - {limits['tokens_per_minute']:,} tokens per minute")
    print(f"   - {limits['tokens_per_day']:,} tokens per day\n")

    print("Quota Reset Times:")
    print("   - Per-minute quotas: Reset every minute")
    print("   - Daily quotas: Reset at midnight UTC\n")

    print("Tips to Avoid Quota Issues:")
    print(f"   1. Use {Constants.DEFAULT_MODEL} instead of gemini-1.5-pro (uses fewer tokens)")
    print("   2. Analyze smaller repositories or fewer files")
    print("   3. Wait between analyses if you hit minute limits")
    print("   4. Consider upgrading to paid tier for higher limits\n")

    print("Useful Links:")
    print(f"   - Check quotas: {Constants.QUOTA_CONSOLE_URL}")
    print(f"   - Quota docs: {Constants.RATE_LIMIT_DOCS_URL}")
    print(f"   - Billing setup: {Constants.BILLING_URL}\n")


def load_config(config_file: Optional[str]) -> Dict[str, Any]:
    """
    Load configuration from file or use defaults. Supports TOML, YAML, and JSON.

    Args:
        config_file (str, optional): Path to configuration file

    Returns:
        Dict[str, Any]: Configuration dictionary with defaults applied

    Note:
        Format is picked from the file extension:
        - .toml -> TOML format
        - .yml/.yaml -> YAML format
        - .json -> JSON format

        Other extensions are sniffed from the content. If loading fails,
        defaults are used and a warning is logged.
    """
    config = dict(Constants.DEFAULT_CONFIG)

    if not config_file:
        logger.info("No configuration file specified, using defaults")
        return config

    config_path = Path(config_file)
    if not config_path.exists():
        logger.warning(f"Configuration file {config_file} not found, using defaults")
        return config

    try:
        content = config_path.read_text(encoding='utf-8')
        file_extension = config_path.suffix.lower()

        if file_extension == '.toml':
            user_config = toml.loads(content)
        elif file_extension in ('.yml', '.yaml'):
            user_config = yaml.safe_load(content)
        elif file_extension == '.json':
            user_config = json.loads(content)
        elif content.strip().startswith('{'):
            user_config = json.loads(content)
        elif '=' in content:
            user_config = toml.loads(content)
        else:
            user_config = yaml.safe_load(content)

        if not isinstance(user_config, dict):
            raise ConfigurationError("top level must be a mapping")

        config.update(user_config)
        logger.info(f"Successfully loaded configuration from {config_file}")

    except (OSError, ValueError, toml.TomlDecodeError, yaml.YAMLError, ConfigurationError) as e:
        logger.error(f"Failed to load configuration file {config_file}: {e}")
        logger.info("Continuing with default configuration")
        return dict(Constants.DEFAULT_CONFIG)

    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Clamp configuration values into reasonable bounds, in place.

    Invalid values are replaced with defaults and logged, never raised.
    """
    try:
        wait = int(config.get('max_retry_wait_seconds'))
    except (TypeError, ValueError):
        wait = Constants.MAX_RETRY_WAIT
    if wait < 1 or wait > Constants.MAX_RETRY_WAIT:
        logger.warning(f"max_retry_wait_seconds out of range, capping at {Constants.MAX_RETRY_WAIT}")
        wait = Constants.MAX_RETRY_WAIT
    config['max_retry_wait_seconds'] = wait

    try:
        config['port'] = parse_port(config.get('port'))
    except ConfigurationError as e:
        logger.warning(f"{e}; using {Constants.DEFAULT_PORT}")
        config['port'] = Constants.DEFAULT_PORT

    for key in ('output_dir', 'log_dir'):
        if not isinstance(config.get(key), str) or not config[key]:
            config[key] = Constants.DEFAULT_CONFIG[key]

    if config.get('model') is not None and not isinstance(config['model'], str):
        logger.warning("model must be a string, ignoring")
        config['model'] = None

    if config.get('advanced_features') is not None and not isinstance(config['advanced_features'], bool):
        logger.warning("advanced_features must be true or false, ignoring")
        config['advanced_features'] = None


def find_model_info(model: Optional[str]) -> Optional[Dict[str, Any]]:
    """Catalogue entry for a logical model name (case-insensitive), or None."""
    if not model:
        return None
    normalized = model.strip().lower()
    return next((m for m in Constants.AVAILABLE_MODELS if m['value'] == normalized), None)


def build_generation_config(prompter: Prompter, settings: Mapping[str, Any],
                            environ: Mapping[str, str] = os.environ) -> GenerationConfig:
    """
    Collect model, API key and advanced-feature choice for one run.

    Configured values are used when valid; everything else is asked for.

    Raises:
        ConfigurationError: If no usable API key is provided
    """
    model_info = find_model_info(settings.get('model'))
    if model_info is None:
        if settings.get('model'):
            logger.warning(f"Unknown model '{settings['model']}', asking instead")
        print("Gemini Configuration")
        print("Advanced models offer enhanced analysis capabilities\n")
        value = prompter.choose(
            "Which Gemini model would you like to use?",
            [(m['label'], m['value']) for m in Constants.AVAILABLE_MODELS],
            default=Constants.DEFAULT_MODEL,
        )
        model_info = find_model_info(value)

    api_key = (environ.get(Constants.API_KEY_ENV) or '').strip()
    if api_key:
        logger.info(f"Using API key from {Constants.API_KEY_ENV}")
    while not api_key:
        api_key = prompter.secret("Enter your Gemini API key").strip()
        if not api_key:
            raise ConfigurationError("API key is required")
        if len(api_key) < Constants.API_KEY_MIN_LENGTH:
            print("API key seems too short. Please check your key.")
            api_key = ''

    advanced_features = False
    if model_info['tier'] == 'advanced':
        configured = settings.get('advanced_features')
        if configured is None:
            advanced_features = prompter.confirm(
                "Enable advanced analysis features? (More detailed but slower)", default=True
            )
        else:
            advanced_features = configured

    base_url = settings.get('base_url') or environ.get(Constants.BASE_URL_ENV) or None

    return GenerationConfig(
        model=model_info['value'],
        api_key=api_key,
        tier=model_info['tier'],
        advanced_features=advanced_features,
        base_url=base_url,
    )


def print_usage():
    """Print detailed usage information and examples."""
    usage_text = f"""
{Constants.APP_NAME} v{Constants.APP_VERSION} - {Constants.APP_DESCRIPTION}
{'-' * (len(Constants.APP_NAME) + len(Constants.APP_VERSION) + len(Constants.APP_DESCRIPTION) + 5)}

COMMANDS:
    {Constants.APP_NAME}                    Analyze current repository (default)
    {Constants.APP_NAME} analyze            Analyze current repository
    {Constants.APP_NAME} analyze -p 3000    Analyze and serve on port 3000
    {Constants.APP_NAME} serve              Serve existing reports on localhost:{Constants.DEFAULT_PORT}
    {Constants.APP_NAME} serve -p 4000      Serve existing reports on port 4000
    {Constants.APP_NAME} list               List all generated reports
    {Constants.APP_NAME} clear              Clear all generated reports
    {Constants.APP_NAME} clear -f           Force clear without confirmation
    {Constants.APP_NAME} quota              Explain Gemini API quotas
    {Constants.APP_NAME} help               Show this help
    {Constants.APP_NAME} --version          Show version

OPTIONS:
    -p, --port <number>     Port for the report server ({Constants.MIN_PORT}-{Constants.MAX_PORT})
                            If the port is unavailable, you'll be asked to choose another
    -m, --model <name>      Gemini model: {', '.join(m['value'] for m in Constants.AVAILABLE_MODELS)}
    -c, --config <file>     Configuration file (.toml, .yaml/.yml, .json)

ENVIRONMENT VARIABLES:
    {Constants.API_KEY_ENV}          Gemini API key (asked for when unset)
    {Constants.BASE_URL_ENV}     OpenAI-compatible endpoint (default: {Constants.GEMINI_BASE_URL})

CONFIGURATION:
    [TOML Example - vibe-code.toml]
    model = "gemini-1.5-flash"
    port = 3000
    output_dir = ".vibe-output"
    max_retry_wait_seconds = 120

OUTPUT:
    Reports are saved in {Constants.OUTPUT_DIR}/ (report.json, report.md, report.html)
    and served on http://localhost:<port>
    Detailed logs are saved to: {Constants.LOG_DIR}/{Constants.LOG_FILE_PREFIX}<timestamp>.log

LINKS:
    Get a Gemini API key: {Constants.API_KEY_URL}
"""
    print(usage_text)


def print_exit_guidance():
    print("\nAnalysis cancelled by user")
    print("You can try again when your API quota resets")
    print(f"Check quota status: {Constants.QUOTA_CONSOLE_URL}")
    print(f"Learn about quotas: {Constants.RATE_LIMIT_DOCS_URL}")
    print("\nWhat you can do next:")
    print("   - Wait for your quota to reset (usually 24 hours for daily limits)")
    print(f"   - Try a lighter model like {Constants.DEFAULT_MODEL}")
    print("   - Upgrade to a paid plan for higher limits")
    print(f"   - Use '{Constants.APP_NAME} list' to see any existing reports")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    Returns:
        argparse.ArgumentParser: Parser with analyze, serve, list/ls, clear,
        quota and help subcommands sharing -p/-c/-m
    """
    # SUPPRESS keeps subparser defaults from overwriting top-level options
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-p', '--port', default=argparse.SUPPRESS, help='Port for web server')
    common.add_argument('-c', '--config', default=argparse.SUPPRESS, help='Configuration file')
    common.add_argument('-m', '--model', default=argparse.SUPPRESS, help='Gemini model to use')

    parser = argparse.ArgumentParser(
        prog=Constants.APP_NAME, description=Constants.APP_DESCRIPTION, parents=[common]
    )
    parser.add_argument('--version', action='version', version=Constants.APP_VERSION)

    subparsers = parser.add_subparsers(dest='command')
    subparsers.add_parser('analyze', parents=[common], help='Analyze the current repository')
    subparsers.add_parser('serve', parents=[common], help='Serve existing reports without re-analyzing')
    subparsers.add_parser('list', aliases=['ls'], parents=[common], help='List all generated reports')
    clear_parser = subparsers.add_parser('clear', parents=[common], help='Clear all generated reports')
    clear_parser.add_argument('-f', '--force', action='store_true', help='Force delete without confirmation')
    subparsers.add_parser('quota', help='Explain Gemini API quotas')
    subparsers.add_parser('help', help='Show detailed help and examples')

    return parser


def run_analysis(settings: Mapping[str, Any], prompter: Prompter, root: os.PathLike,
                 gateway_factory: Callable[[GenerationConfig], Any] = GeminiGateway,
                 sleep: Callable[[float], None] = time.sleep) -> ProjectReport:
    """
    Analyze `root`, save the report, and return it.

    A report is written only when the run completes, with either AI text or
    fallback text. A user exit or a fatal failure leaves the output
    directory untouched.

    Args:
        settings (Mapping[str, Any]): Validated configuration from load_config
        prompter (Prompter): Interactive question capability
        root (os.PathLike): Directory to scan; reports go under root/output_dir
        gateway_factory: Builds the model gateway from a GenerationConfig
        sleep: Blocking delay function used for retries

    Returns:
        ProjectReport: The saved report

    Raises:
        UserExitError, AnalysisError, RepositoryScanError, ReportError,
        ConfigurationError
    """
    config = build_generation_config(prompter, settings)
    logger.info(f"Using AI model: {config.model} ({config.tier} tier)")

    orchestrator = AnalysisOrchestrator(
        config,
        RepositoryScanner(root),
        prompter,
        gateway_factory=gateway_factory,
        sleep=sleep,
        max_retry_wait=settings['max_retry_wait_seconds'],
    )
    outcome = orchestrator.run()

    print("Generating report...")
    report = generate_report(outcome.files, outcome.analysis, outcome.model_used, outcome.model_tier)
    output_dir = Path(root) / settings['output_dir']
    save_report(report, output_dir)

    print("\nAnalysis complete!")
    print(f"Model used: {report.model_used}")
    if config.advanced_features and not outcome.used_fallback:
        print("Advanced analysis mode enabled")
    print(f"Reports saved to: {output_dir}")
    return report


def main(argv: Optional[Sequence[str]] = None):
    """
    Main entry point for vibe-code.

    Exit Codes:
        0: Success, or the user chose to exit
        1: Invalid arguments, port, or interrupted
        2: Configuration error
        3: Analysis, scan or report failure
        4: Unexpected error
    """
    args = build_parser().parse_args(argv)
    command = args.command or 'analyze'

    if command == 'help':
        print_usage()
        sys.exit(0)

    if command == 'quota':
        show_quota_help()
        sys.exit(0)

    settings = load_config(getattr(args, 'config', None))
    if getattr(args, 'model', None):
        settings['model'] = args.model

    try:
        port = parse_port(getattr(args, 'port', settings['port']))
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    output_dir = Path.cwd() / settings['output_dir']
    prompter = TerminalPrompter()

    try:
        if command in ('list', 'ls'):
            list_reports(output_dir)
        elif command == 'clear':
            clear_reports(output_dir, args.force, prompter)
        elif command == 'serve':
            serve_report(output_dir, port, prompter)
        else:
            print(f"\nWelcome to {Constants.APP_NAME}!")
            print(f"{Constants.APP_DESCRIPTION}\n")
            log_file_path = setup_logging(settings['log_dir'])
            print(f"Log file: {log_file_path}")

            run_analysis(settings, prompter, Path.cwd())
            serve_report(output_dir, port, prompter)

    except UserExitError:
        print_exit_guidance()
        sys.exit(0)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        logger.info("Interrupted by user (KeyboardInterrupt)")
        sys.exit(1)

    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    except (AnalysisError, RepositoryScanError, ReportError) as e:
        print(f"Analysis failed: {e}")
        logger.error(f"Analysis failed: {e}")
        sys.exit(3)

    except Exception as e:
        print(f"Unexpected error: {e}")
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(4)

    sys.exit(0)


if __name__ == "__main__":
    main()
