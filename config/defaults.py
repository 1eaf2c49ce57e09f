"""Default pipeline settings."""

DEFAULTS = {
    "stack": "nextjs",
    "model": "claude-sonnet-4-5-20250929",
    "max_tokens": 16000,
    "llm_timeout": 120,                 # seconds per backend round-trip
    "max_repair_attempts": 3,           # build invocations per run, cannot be overridden
    "build_timeout": 300,
    "install_timeout": 600,
    "sandbox_timeout": 60,
    "allowed_commands": ["npm", "npx", "node"],
    "abort_on_generation_error": True,
    "generation_workers": 1,            # 1 = strictly sequential task generation
    "project_name": "generated-app",
}
