
"""Tipos de resultado explícitos e erros do motor.

Falha de dependência (banco de regras, classificador) nunca sobe como exceção
para quem chama o pipeline: vira um `Result` com `error` preenchido e o valor
de fallback já resolvido.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

class SafechatError(Exception):
    """Erro base do pacote."""

class DependencyUnavailable(SafechatError):
    """Banco de regras ou classificador inacessível (erro, timeout, quota)."""

    def __init__(self, dependency: str, detail: str = ""):
        super().__init__(f"{dependency}: {detail}" if detail else dependency)
        self.dependency = dependency
        self.detail = detail

class RuleValidationError(SafechatError):
    """Regra inválida enviada pela superfície administrativa."""

@dataclass(frozen=True)
class DependencyError:
    dependency: str
    detail: str

    @classmethod
    def from_exception(cls, dependency: str, exc: BaseException) -> "DependencyError":
        detail = str(exc) or exc.__class__.__name__
        return cls(dependency=dependency, detail=detail)

@dataclass(frozen=True)
class Result(Generic[T]):
    """Valor + erro opcional de dependência.

    `degraded` indica que `value` é um fallback embutido, não o dado real.
    """
    value: Optional[T] = None
    error: Optional[DependencyError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, error: DependencyError) -> "Result[T]":
        return cls(value=value, error=error)

    @classmethod
    def failure(cls, error: DependencyError) -> "Result[T]":
        return cls(value=None, error=error)
