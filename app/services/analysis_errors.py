"""
Hierarquia de erros da análise (imagem, texto, código de barras).

O `error_type` vai no corpo da resposta HTTP para o cliente decidir entre
"verifique sua conexão", fallback para entrada manual ou nova descrição.
`permanent` indica ao worker da fila que repetir o job não adianta.
"""


class AnalysisError(Exception):
    """Erro genérico da análise"""
    error_type = "generic"
    permanent = False


class AnalysisNetworkError(AnalysisError):
    """Timeout ou falha de conexão com o LLM / APIs de visão"""
    error_type = "network"


class AnalysisRateLimitError(AnalysisError):
    """Rate limit do provedor (429) ou guard local saturado"""
    error_type = "rate_limit"


class AnalysisParseError(AnalysisError):
    """Resposta do modelo fora do formato esperado"""
    error_type = "parse"


class NoLiquidDetectedError(AnalysisParseError):
    """O modelo respondeu NO_WATER"""
    permanent = True


class BarcodeNotFoundError(AnalysisParseError):
    """Nenhum código de barras na imagem"""
    permanent = True


class AlcoholNotCountedError(AnalysisError):
    """Bebida alcoólica vale 0 oz de água: não gera entrada"""
    error_type = "alcohol"
    permanent = True


class InvalidAnalysisInput(AnalysisError):
    """Payload inválido (base64 vazio, duração malformada...)"""
    error_type = "invalid_input"
    permanent = True


class StorageUploadError(AnalysisError):
    """Falha ao enviar a imagem para o object storage"""
    error_type = "upload"
