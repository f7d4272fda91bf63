"""
External links for a proposal: SPLegis detail page, council portal and PDF.
"""

from __future__ import annotations

from .models import Proposal, ProposalView

__all__ = ["pdf_link", "portal_link", "splegis_link", "to_view"]

SPLEGIS_URL = (
    "https://splegisconsulta.saopaulo.sp.leg.br/Pesquisa/DetailsDetalhado"
    "?COD_MTRA_LEGL={code}&COD_PCSS_CMSP={number}&ANO_PCSS_CMSP={year}"
)
PORTAL_URL = (
    "https://www.saopaulo.sp.leg.br/cgi-bin/wxis.bin/iah/scripts/"
    "?IsisScript=iah.xis&lang=pt&format=detalhado.pft&base=proje&form=A"
    "&nextAction=search&indexSearch=^nTw^lTodos%20os%20campos"
    "&exprSearch=P={type}{number}{year}"
)
PDF_URL = "https://www.saopaulo.sp.leg.br/iah/fulltext/projeto/{type}{number:04d}-{year}.pdf"


def splegis_link(proposal: Proposal) -> str:
    return SPLEGIS_URL.format(
        code=proposal.type.matter_code, number=proposal.number, year=proposal.year
    )


def portal_link(proposal: Proposal) -> str:
    return PORTAL_URL.format(type=proposal.type.value, number=proposal.number, year=proposal.year)


def pdf_link(proposal: Proposal) -> str:
    """PDF full text; the number is zero-padded to four digits."""
    return PDF_URL.format(type=proposal.type.value, number=proposal.number, year=proposal.year)


def to_view(proposal: Proposal) -> ProposalView:
    """Attach external links to a proposal for presentation."""
    return ProposalView(
        **proposal.model_dump(),
        link_splegis=splegis_link(proposal),
        link_portal=portal_link(proposal),
        link_pdf=pdf_link(proposal),
    )
