"""Infrastructure layer - External dependencies and implementations.

This layer contains the HTTP clients for the rule service: rule search,
loading and versioned persistence, the editor configuration and the
argument option lists. It implements the ports defined in
``rulebuilder.domain.ports``.
"""
