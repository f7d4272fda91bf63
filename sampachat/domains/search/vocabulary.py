"""
Vocabulary - Portuguese word lists that drive query interpretation.

Stopwords, proposal type aliases, author name prefixes and the thematic
terms that must never be read as an author's surname. The thematic list is
heuristic by nature; deployments can replace it through settings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import ProposalType
from .normalizer import normalize

__all__ = [
    "AUTHOR_PREFIXES",
    "DEFAULT_STOPWORDS",
    "DEFAULT_THEMATIC_TERMS",
    "TYPE_ALIASES",
    "Vocabulary",
]

TYPE_ALIASES: dict[str, ProposalType] = {
    "pl": ProposalType.PL,
    "pls": ProposalType.PL,
    "projeto de lei": ProposalType.PL,
    "projetos de lei": ProposalType.PL,
    "pdl": ProposalType.PDL,
    "pdls": ProposalType.PDL,
    "projeto de decreto legislativo": ProposalType.PDL,
    "projetos de decreto legislativo": ProposalType.PDL,
    "plo": ProposalType.PLO,
    "plos": ProposalType.PLO,
    "projeto de lei orgânica": ProposalType.PLO,
    "projeto de lei organica": ProposalType.PLO,
    "projetos de lei orgânica": ProposalType.PLO,
    "projetos de lei organica": ProposalType.PLO,
    "pr": ProposalType.PR,
    "prs": ProposalType.PR,
    "projeto de resolução": ProposalType.PR,
    "projeto de resolucao": ProposalType.PR,
    "projetos de resolução": ProposalType.PR,
    "projetos de resolucao": ProposalType.PR,
}

# Stripped from author names before full-name matching
AUTHOR_PREFIXES = ("Ver. ", "Executivo - ", "Dr. ")

DEFAULT_STOPWORDS = frozenset(
    {
        # Preposições e contrações
        "de", "da", "do", "dos", "das", "em", "na", "no", "nas", "nos",
        "para", "por", "com", "sem", "até", "sobre", "sob", "entre", "após",
        "perante",
        # Artigos
        "o", "a", "os", "as", "um", "uma", "uns", "umas",
        # Conjunções
        "e", "ou", "mas", "porém", "contudo", "todavia", "entretanto", "que",
        "porque", "pois", "como", "quando", "se",
        # Pronomes
        "eu", "tu", "ele", "ela", "nós", "vós", "eles", "elas", "este",
        "esta", "isto", "esse", "essa", "isso", "aquele", "aquela", "aquilo",
        "meu", "minha", "seu", "sua", "nosso", "nossa", "quem", "qual",
        "cujo", "cuja",
        # Advérbios
        "não", "sim", "talvez", "muito", "pouco", "mais", "menos", "tão",
        "apenas", "só", "somente", "já", "ainda",
        # Verbos auxiliares
        "é", "são", "foi", "foram", "será", "serão", "tem", "têm", "tinha",
        "tinham", "há", "haver", "estar", "sendo",
        # Alta frequência em ementas
        "estabelece",
    }
)

DEFAULT_THEMATIC_TERMS = frozenset(
    {
        "saude", "educacao", "mulher", "trabalho", "ambiente", "cultura",
        "transporte", "direitos", "idoso", "crianca", "adolescente",
        "familia", "habitacao", "moradia", "urbanismo", "seguranca",
        "comercio", "empresarial", "desenvolvimento", "orçamento", "financas",
        "social", "promocao", "inclusao", "assistencia", "politica",
        "publica", "servico", "verde", "azul", "esporte", "juventude",
        "cidadania", "consumidor", "defesa", "justica", "diversidade",
        "igualdade", "racial", "genero", "acessibilidade", "mobilidade",
        "transparencia", "participacao", "popular", "tecnologia", "inovacao",
        "economia", "planejamento", "emergencia", "urgencia", "posto",
        "hospital", "acidente", "animal", "pet", "comunidade",
        # Nomes de comissões
        "comissao", "comissoes", "urbana", "metropolitana", "meio",
        "extraordinaria", "relacoes", "internacionais", "administracao",
        "transito", "atividade", "economica", "constituicao", "legislacao",
        "participativa", "legislativa", "legais", "legal", "fiscalizacao",
        "investigacao", "processante", "parlamentar", "inquerito",
        "sustentabilidade", "tributos", "finanças", "gestao", "patrimonio",
        "infancia", "fomento", "direito", "projeto", "humanos",
    }
)


@dataclass(frozen=True)
class Vocabulary:
    """Normalized word lists used by extraction, ranking and highlighting."""

    stopwords: frozenset[str] = field(default=DEFAULT_STOPWORDS)
    thematic_terms: frozenset[str] = field(default=DEFAULT_THEMATIC_TERMS)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stopwords", frozenset(normalize(w) for w in self.stopwords))
        object.__setattr__(
            self, "thematic_terms", frozenset(normalize(w) for w in self.thematic_terms)
        )

    @classmethod
    def create(cls, thematic_terms: Iterable[str] | None = None) -> Vocabulary:
        """Build a vocabulary, optionally replacing the thematic terms."""
        if thematic_terms is None:
            return cls()
        return cls(thematic_terms=frozenset(thematic_terms))

    def is_stopword(self, word: str) -> bool:
        return normalize(word) in self.stopwords
