"""Page navigation primitives used by ``NavigationGate.safe_navigate``."""
