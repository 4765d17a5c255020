"""Index, preview and export Codex agent conversations as Markdown."""
