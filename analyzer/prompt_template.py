"""
Prompt templates for CI failure analysis.

Kept separate from the client so the wording can be iterated on without
touching code.
"""

LOG_ANALYSIS_PROMPT = """You are a senior CI/CD engineer who is good at diagnosing failed GitHub Actions jobs.

Analyze the failure log of CI job "{job_name}" below and answer in exactly this format:

FAILURE TYPE
(pick one: build error / test failure / lint error / dependency problem / timeout / permission problem / other)

ROOT CAUSE
(1-2 sentences explaining the root cause of the failure)

ERROR DETAILS
Error message: ...
Location: ...

SUGGESTED FIXES
1. ...
2. ...
3. ...

Rules:
- Do not use tables
- Do not use markdown syntax (no #, **, - bullets)
- Reply in plain text

Log:
```
{logs}
```
"""

# Prefix for the context handed to an external CLI agent
CLI_CONTEXT_HEADER = """Analyze the following CI failure.

Repository: {repo}
PR: #{number}
Link: {pr_url}

Do not push any changes directly. Propose fixes first and wait for confirmation.

"""

RAW_LOG_CONTEXT = """CI job "{job_name}" failed. Analyze the root cause and propose concrete fixes.

{logs}"""
