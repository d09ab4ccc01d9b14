# core/dependencies.py
"""Centralized dependency management to prevent circular imports"""


class DependencyContainer:
    """Singleton container for shared dependencies"""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def initialize(self, model_manager, store=None, pacer=None):
        """Initialize all shared dependencies once"""
        if self._initialized:
            return

        from core.pacing import default_pacer
        from core.response_generator import ResponseGenerator
        from memory.conversation_store import ConversationStore

        self.model_manager = model_manager
        self.conversation_store = store or ConversationStore()
        self.response_generator = ResponseGenerator(model_manager, pacer=pacer or default_pacer())
        self._initialized = True

    def reset(self):
        """Forget everything; used by tests and on shutdown."""
        self._initialized = False
        for attr in ("model_manager", "conversation_store", "response_generator"):
            self.__dict__.pop(attr, None)

    def _require(self):
        if not self._initialized:
            raise RuntimeError("Dependencies not initialized. Call initialize() first.")

    def get_model_manager(self):
        self._require()
        return self.model_manager

    def get_conversation_store(self):
        self._require()
        return self.conversation_store

    def get_response_generator(self):
        self._require()
        return self.response_generator

# Global instance
deps = DependencyContainer()
