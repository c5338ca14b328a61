"""Stitch static site builder.

This package turns a tree of HTML pages, Markdown pages and reusable HTML
components into a rendered output tree. Components are spliced into pages by
name, Markdown is rendered to HTML, and static assets are copied verbatim.

In watch mode the output is kept in sync with the source tree, and the dev
server pushes reload signals to connected browsers after each rebuild.

Architecture:
- Discovery: ignore rules and the source walker decide which files take part.
- Rendering: the Markdown renderer and the injection engine produce page HTML.
- Orchestration: the site builder owns every write to the output tree.
- Dev loop: the change watcher feeds rebuild requests to a single build
  thread, and the live reload server broadcasts to browser sessions.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
