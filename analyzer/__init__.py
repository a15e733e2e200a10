"""CI failure log analysis and external CLI hand-off."""
