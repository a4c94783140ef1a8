"""Rendezvous server package.

Módulos:
- ``registry`` guarda o mapa identificador -> endereço.
- ``request_handler`` interpreta BroadcastId/GetClientAddr e monta a resposta.
- ``server`` aceita conexões TCP, uma requisição por conexão.
- ``config`` e ``main`` cuidam de parâmetros e do processo.
"""
