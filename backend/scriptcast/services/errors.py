"""
Exceções do pipeline de geração de vídeo.
"""

from typing import Optional


class PipelineError(Exception):
    """Erro base do pipeline."""
    pass


class KeyPoolExhaustedError(PipelineError):
    """Nenhuma chave de API disponível (todas em blacklist ou pool vazio)."""
    pass


class ProviderError(PipelineError):
    """Erro retornado por um provedor externo (TTS, vídeo, banco de imagens)."""

    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(f"{message} (HTTP {status_code})" if status_code else message)


class PollTimeoutError(ProviderError):
    """O resultado assíncrono não ficou pronto dentro do orçamento de polling."""
    pass


class GenerationError(PipelineError):
    """Uma unidade do lote esgotou as tentativas."""

    def __init__(self, unit_index: int, cause: Optional[BaseException] = None):
        self.unit_index = unit_index
        self.cause = cause
        super().__init__(f"unit {unit_index} failed: {cause}")


class EncoderError(PipelineError):
    """FFMPEG terminou com código diferente de zero (ou estourou o timeout)."""

    def __init__(self, operation: str, returncode: Optional[int], stderr: str = ""):
        self.operation = operation
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1][:200] if stderr.strip() else "no output"
        super().__init__(f"FFMPEG failed [{operation}] (exit {returncode}): {detail}")


class StockVideoError(PipelineError):
    """Falha ao buscar ou baixar vídeos de banco de imagens."""
    pass


class StageError(PipelineError):
    """Falha em uma etapa do pipeline; a mensagem é a que o usuário vê."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
