"""Rule Store package for loading and caching the query rule set."""

from .store import DatabaseRuleBackingStore, FileRuleBackingStore, RuleStore, parse_rule_set

__all__ = ["DatabaseRuleBackingStore", "FileRuleBackingStore", "RuleStore", "parse_rule_set"]
