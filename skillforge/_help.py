"""Help text for skillforge commands."""

from knack.help_files import helps

helps["init"] = """
type: command
short-summary: Create a new skill project.
long-summary: |
    Writes skillforge.yaml with the skill's name and description.

    When --complexity is omitted the description is classified by the AI
    provider; if the provider is unavailable an offline keyword heuristic
    is used instead. Complexity sets how many questions discovery asks.
examples:
    - name: Create a project and let the model pick the depth
      text: skillforge init --name invoice-triage --description "Route incoming invoices to the right approver"
    - name: Force a short discovery
      text: skillforge init -n greeter -d "Say hello in the user's language" --complexity simple
"""

helps["discover"] = """
type: command
short-summary: Run (or resume) the discovery conversation.
long-summary: |
    Walks through the discovery phases. For every question the model
    proposes an answer. Press Enter to accept it, 'e' to edit it, or type
    your own answer. Type /help during the session for commands.

    Progress is saved after every answer; quit at any time and run the
    command again to continue.
examples:
    - name: Start or continue discovery
      text: skillforge discover
    - name: Throw away the saved session and start over
      text: skillforge discover --reset
"""

helps["status"] = """
type: command
short-summary: Show discovery progress.
examples:
    - name: Machine-readable status
      text: skillforge status --json
"""

helps["spec"] = """
type: command
short-summary: Build the skill specification from a finished discovery.
long-summary: |
    Writes SKILL_SPEC.md and skill_spec.yaml. Discovery must be complete
    unless --force is given.
examples:
    - name: Write the specification to ./spec
      text: skillforge spec
    - name: Build from a partial session
      text: skillforge spec --force --output-dir draft
"""

helps["config"] = """
type: group
short-summary: Manage skillforge.yaml.
"""

helps["config show"] = """
type: command
short-summary: Display the configuration with secrets masked.
"""

helps["config get"] = """
type: command
short-summary: Get one configuration value.
examples:
    - name: Show the AI provider
      text: skillforge config get --key ai.provider
"""

helps["config set"] = """
type: command
short-summary: Set one configuration value.
long-summary: |
    The GitHub token (ai.github_models.token) is written to
    skillforge.secrets.yaml, which should not be committed.
examples:
    - name: Switch to Azure OpenAI
      text: skillforge config set --key ai.provider --value azure-openai
"""
