"""roc -- compose projects from extensions and scaffold new ones.

A roc project declares *extensions* (packages and plugins). Each extension
contributes default configuration, documentation metadata with validators,
hooks and CLI actions. roc resolves all of them into one canonical
configuration per invocation and exposes the merged actions as commands.

Typical workflow::

    roc init web          # scaffold a project from a template
    roc config show       # print the resolved configuration
    roc docs              # write markdown documentation for the project

Modules:
    app: Typer application and CLI entry point.
    orchestrator: Builds the complete configuration for a project.
    models: Pydantic models shared across the package.
    config: Application config and project manifest loading.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "1.0.0"
