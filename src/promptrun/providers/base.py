from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Success:
    output: str


@dataclass(frozen=True)
class Failure:
    error: str


ProviderResult = Success | Failure


class ApiProvider(ABC):
    @abstractmethod
    def identify(self) -> str:
        ...

    @abstractmethod
    def describe(self) -> str:
        ...

    @abstractmethod
    def invoke(self, prompt: str) -> ProviderResult:
        ...

    def __str__(self) -> str:
        return self.describe()
