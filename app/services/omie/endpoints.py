"""Omie API endpoint URLs, relative to ``settings.omie_base_url``."""

CONTA_RECEBER = "/financas/contareceber/"
MOVIMENTOS_FINANCEIROS = "/financas/mf/"
EXTRATO = "/financas/extrato/"
CLIENTES = "/geral/clientes/"
DEPARTAMENTOS = "/geral/departamentos/"
CATEGORIAS = "/geral/categorias/"
CONTAS_CORRENTES = "/geral/contacorrente/"
VENDEDORES = "/geral/vendedores/"
