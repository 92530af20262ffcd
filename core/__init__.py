"""Core processing modules package.

This package contains the contract workflow engine:
- workflow: state machine, façade, document store and notification collaborators
- agents: bilingual clause analysis, risk reconciliation and deadline resolution
- llm: async OpenAI client with classified errors
- cost_tracker: cost calculation and logging utilities
- errors: error taxonomy shared by every layer
"""
