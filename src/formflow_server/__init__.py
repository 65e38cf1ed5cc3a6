"""formflow_server — FastAPI development server for conversational forms.

Serves storyboards from YAML files and records sessions, answers and
uploaded files in memory, so the runtime and the httpx client can be
exercised end-to-end without a production backend.
"""
