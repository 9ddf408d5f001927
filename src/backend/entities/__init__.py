"""
Entities package.

Each subdirectory represents one component of the query service:
- rule_store/: Loads, caches and persists the rule set
- pattern_matcher/: Keyword matching of prompts against query patterns
- ai_generator/: Language-model SQL generation
- query_generation/: Chooses between the AI and pattern generators
- query_validator/: Read-only safety checks for SQL
- query_executor/: Syntax probe, row capping and execution
- query_log/: Audit log of generation and validation requests
"""
