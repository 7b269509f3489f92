"""Fixed identifiers, flags and the published tool description."""

SERVER_VERSION = "1.11.0"
SERVER_NAME = "claude_code"

TOOL_NAME = "claude_code"

DEFAULT_CLI_NAME = "claude"
LOCAL_INSTALL_PARTS = (".claude", "local", "claude")

# Flags passed on every tool call, ahead of the prompt text
SKIP_PERMISSIONS_FLAG = "--dangerously-skip-permissions"
PROMPT_FLAG = "-p"
VERSION_FLAG = "--version"

DEFAULT_TIMEOUT_SECONDS = 3600
VERSION_PROBE_TIMEOUT_MS = 5000

UNKNOWN_VERSION = "unknown"
CLI_NOT_FOUND_VERSION = "Claude CLI not found"
VERSION_CHECK_FAILED = "Claude CLI not found or version check failed"

DEFAULT_PROTOCOL_VERSION = "2024-11-05"

TOOL_DESCRIPTION_TEMPLATE = """\
Claude Code Agent: a general-purpose assistant for code, file, Git and terminal \
work, driven through the Claude CLI. Pass `workFolder` to run inside a project.

• Files: create, read, edit, move, copy, delete and list files; inspect images
    └─ e.g. "Create /tmp/log.txt with 'system boot'", "List files in /src"

• Code: generate, analyse, refactor and fix
    └─ e.g. "Write Python that converts CSV to JSON", "Find bugs in my_script.py"

• Git: stage, commit, push and tag
    └─ e.g. "Commit src/main.java with 'feat: user auth' to develop"

• Web search and summarisation

• Multi-step workflows such as version bumps, changelog updates and releases

• GitHub: open pull requests, check CI status

**Prompt tips**

1. Be explicit and step-by-step for complex tasks.
2. For multi-line text, write it to a temporary file in the project, use it, then delete it.
3. On a timeout, split the task into smaller steps.
4. To get analysis only, say so in the prompt and ask for no file modifications.
5. With `workFolder` set to the project path, relative file paths in the prompt are fine.
6. Each request is independent and starts fresh: include all the context it needs.

---
MCP Server Version: {{SERVER_VERSION}}
Claude CLI Version: {{CLAUDE_CLI_VERSION}}"""
