"""
Shared fixtures: a representative statement as extracted text lines.
"""
import pytest

from ..core.detectors import load_layout


STATEMENT_LINES = [
    "Belfius Banque SA",
    "Boulevard Pachéco 44, 1000 Bruxelles   ",
    "",
    "Extrait N° 2024-004",
    "ACME CONSULTING SRL",
    "BE68 5390 0754 7034 EUR",
    "BIC GKCCBEBB",
    "Solde précédent au 31-03-2024 12.345,67 +",
    "Solde actuel au 30-04-2024 13.505,68 +",
    "N° Type d'opération",
    "Date",
    "Valeur Montant",
    "01-04-2024",
    "0015 Virement SEPA en votre faveur",
    "BE71 0961 2345 6769 EUR",
    "GKCCBEBB",
    "DUPONT & FILS SPRL",
    "Rue de la Loi 16, 1000 Bruxelles",
    "Communication: INV 220006",
    "Référence banque: 2404011234567890",
    "04-04 1.500,00 +",
    "0016 Paiement par carte",
    "Date de l'opération: 02-04-2024",
    "PROXIMUS SA",
    "Bruxelles",
    "05-04 250,00 -",
    "...",
    "15-04-2024",
    "0017 Domiciliation",
    "Référence donneur d'ordre",
    "ENGIE-2024-04",
    "ENGIE ELECTRABEL",
    "16-04 89,99 -",
    "0018 Virement SEPA en votre faveur",
    "Communication",
    "Facture 220007 Martin",
    "MARTIN CONSULTING",
    "Solde actuel au 30-04-2024 13.505,68 +",
    "Les dépôts sont protégés par le Fonds de garantie",
]


@pytest.fixture
def statement_lines():
    """Text lines of a four-operation statement."""
    return list(STATEMENT_LINES)


@pytest.fixture
def layout():
    return load_layout("belfius_fr")
