"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Buffer radius, batching, palette, property names
- exceptions: Exception taxonomy shared by every stage
- corpus: Boundary to the external corpus loader
- progress: Progress sinks and reporting windows
- scheduling: Cooperative scheduler and cancellation token
- logging: Console logging setup for the command line
"""
