from kurral_core.policy.engine import PolicyDecision, evaluate_policy

__all__ = ["PolicyDecision", "evaluate_policy"]
