"""Wire-level pieces shared by the rendezvous server and the peer client.

Módulos:
- ``codec`` monta e interpreta os frames (BroadcastId, Message, GetClientAddr, Ack).
- ``models`` define o tipo ``Address``.
- ``errors`` concentra a taxonomia de erros (config, protocolo, transporte, lookup).
- ``transport`` lê/escreve um frame por conexão.
"""
