"""
mermaid package

Mermaid rendering: CLI wrapper, SVG graphic model and the render pipeline.
"""
