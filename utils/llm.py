"""Claude API client for planning and code generation."""

import json
import os
import re
import time

import anthropic

from config.defaults import DEFAULTS

MODEL = DEFAULTS["model"]
MAX_TOKENS = DEFAULTS["max_tokens"]


class LLMError(Exception):
    """Base class for generative backend failures."""


class RateLimited(LLMError):
    pass


class InvalidCredentials(LLMError):
    pass


class MalformedResponse(LLMError):
    """The reply could not be parsed into the requested structure."""

    def __init__(self, message, raw=""):
        self.raw = raw
        super().__init__(message)


class LLMTimeout(LLMError):
    pass


def get_client():
    """Return an Anthropic client. Raises if no API key is set."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise InvalidCredentials(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "Get a key at https://console.anthropic.com/ and run:\n"
            "  export ANTHROPIC_API_KEY='your-key-here'"
        )
    return anthropic.Anthropic(api_key=api_key, timeout=DEFAULTS["llm_timeout"], max_retries=0)


def call_llm(system_prompt, user_message, response_format=None):
    """Call Claude with optional structured JSON output.

    Args:
        system_prompt: System prompt string.
        user_message: User message string.
        response_format: If "json", appends instruction to return valid JSON
                         and parses the response.

    Returns:
        Raw text string, or parsed dict/list if response_format="json".

    Raises:
        RateLimited, InvalidCredentials, LLMTimeout, MalformedResponse, LLMError.
    """
    client = get_client()

    if response_format == "json":
        system_prompt = system_prompt + "\n\nIMPORTANT: Respond ONLY with valid JSON. No markdown fences, no commentary."

    for attempt in range(2):
        try:
            # Use streaming to avoid SDK timeout for large max_tokens
            text = ""
            with client.messages.stream(
                model=MODEL,
                max_tokens=MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            ) as stream:
                for chunk in stream.text_stream:
                    text += chunk
                response_msg = stream.get_final_message()

            if response_msg.stop_reason == "max_tokens":
                raise MalformedResponse("Response hit the token limit and was truncated", raw=text)
            if not text.strip():
                raise MalformedResponse("Empty response from model", raw=text)

            if response_format == "json":
                return extract_json(text)
            return text

        except anthropic.RateLimitError as e:
            if attempt == 0:
                time.sleep(2)
                continue
            raise RateLimited(str(e)) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise InvalidCredentials(str(e)) from e
        except anthropic.APITimeoutError as e:
            raise LLMTimeout(f"Model call exceeded {DEFAULTS['llm_timeout']}s") from e
        except anthropic.APIError as e:
            raise LLMError(str(e)) from e

    raise LLMError("Model call failed")


def extract_json(text):
    """Parse a JSON object or array out of a model reply.

    Accepts bare JSON, JSON wrapped in markdown fences, and JSON surrounded by
    prose. Raises MalformedResponse when no JSON value can be recovered.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```$", "", cleaned)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    if not starts:
        raise MalformedResponse("No JSON found in response", raw=text)
    start = min(starts)
    closer = "}" if cleaned[start] == "{" else "]"
    end = cleaned.rfind(closer)
    if end <= start:
        raise MalformedResponse("No JSON found in response", raw=text)
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"JSON parse error: {e}", raw=text) from e


def parse_files(response):
    """Extract (filename, content) pairs from fenced code blocks.

    Handles multiple formats Claude may use:
        ```src/app/page.tsx          (filepath as language tag)
        ```tsx src/app/page.tsx      (language then filepath)
        ```tsx                       (language tag, filename in first comment line)
        // File: src/app/page.tsx
        ...
        ```

    Returns list of (relative_path, content) tuples.
    """
    files = []
    pattern = re.compile(
        r"```(\S+?)(?:[ \t]+(\S+?))?\n(.*?)```",
        re.DOTALL,
    )

    # Pattern to detect a filepath in a comment on the first line
    comment_path_re = re.compile(
        r"^(?:#|//|/\*|<!--)\s*(?:[Ff]ile:\s*)?(.+?\.\w+)\s*(?:\*/|-->)?\s*\n",
    )

    for match in pattern.finditer(response):
        tag = match.group(1)        # e.g. "src/app/page.tsx" or "tsx"
        second = match.group(2)     # e.g. "src/app/page.tsx" after "tsx" (if present)
        content = match.group(3)

        filename = None

        # Case 1: tag itself is a filepath (contains . and /)
        if "/" in tag and "." in tag:
            filename = tag
        # Case 2: second token is a filepath (```tsx src/app/page.tsx)
        elif second and "." in second:
            filename = second
        # Case 3: tag is a bare filename with extension (```page.tsx)
        elif "." in tag and "/" not in tag:
            filename = tag
        # Case 4: tag is just a language, check first line for a filepath comment
        else:
            cm = comment_path_re.match(content)
            if cm:
                filename = cm.group(1).strip()
                content = content[cm.end():]

        if not filename:
            continue

        if content.endswith("\n"):
            content = content[:-1]

        files.append((filename, content))
    return files
