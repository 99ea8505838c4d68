"""Vitrine partenaire: catalogue, commandes, paiements et abonnements."""
