from typing import Dict, List

from vision_testgen.config.settings import settings
from vision_testgen.core.cache import ResultCache
from vision_testgen.repositories.interfaces.completion_provider import ICompletionProvider
from vision_testgen.repositories.implementations.anthropic_provider import AnthropicProvider
from vision_testgen.repositories.implementations.gemini_provider import GeminiProvider
from vision_testgen.repositories.implementations.openai_provider import OpenAIProvider
from vision_testgen.services.completion_client import CompletionClient
from vision_testgen.services.test_case_service import TestCaseGenerationService


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._providers: Dict[str, ICompletionProvider] = {}
        self._result_cache = None
        self._generation_service = None

    def providers(self) -> List[ICompletionProvider]:
        """Get all completion providers (singletons)"""
        if not self._providers:
            for provider in (AnthropicProvider(), OpenAIProvider(), GeminiProvider()):
                self._providers[provider.name] = provider
        return list(self._providers.values())

    def result_cache(self) -> ResultCache:
        """Get the result cache (singleton)"""
        if self._result_cache is None:
            self._result_cache = ResultCache(max_entries=settings.result_cache_max_entries)
        return self._result_cache

    def generation_service(self) -> TestCaseGenerationService:
        """Get the test case generation service (singleton, owns the cache)"""
        if self._generation_service is None:
            clients = {provider.name: CompletionClient(provider) for provider in self.providers()}
            self._generation_service = TestCaseGenerationService(
                completion_clients=clients,
                cache=self.result_cache(),
                default_provider=settings.ai_provider,
            )
        return self._generation_service


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_generation_service() -> TestCaseGenerationService:
    """FastAPI dependency for the generation service"""
    return container.generation_service()


def get_completion_providers() -> List[ICompletionProvider]:
    """FastAPI dependency for configured completion providers"""
    return container.providers()
