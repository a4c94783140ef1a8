"""Client runtime package for the rendezvous-assisted peer.

Módulos do cliente:
- ``config`` carrega parâmetros de arquivo JSON e overrides da CLI.
- ``p2p_client`` orquestra listener, registro, descoberta e envio direto.
- ``rendezvous_connection`` encapsula as chamadas ao servidor rendezvous.
- ``peer_server`` aceita conexões inbound e responde Message com Ack.
- ``address_cache`` e ``state`` modelam o estado do agente.
- ``cli`` expõe a interface interativa de comandos.
"""
