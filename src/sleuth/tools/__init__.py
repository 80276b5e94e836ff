"""Tool framework for the research agent.

Provides the tool protocol and execution lifecycle, the concrete
search, fetch, analysis and synthesis tools, and the registry that
discovers, executes and tracks them.
"""
