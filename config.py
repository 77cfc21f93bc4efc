"""
Configuration du service d'agrégation de tokens
"""

import os
import json
import logging
from typing import Dict, Any

logger = logging.getLogger("config")

# Configuration par défaut
DEFAULT_CONFIG = {
    # RPC Solana (surchargeable via SOLANA_RPC_URL)
    "SOLANA_RPC_URL": "https://api.mainnet-beta.solana.com",

    # Sources REST
    "JUPITER_TOKENS_URL": "https://lite-api.jup.ag/tokens/v2/tag?query=verified",
    "PUMPFUN_TRENDING_URL": "https://frontend-api.pump.fun/coins/king-of-the-hill",

    # Helius DAS (désactivé si la clé est absente)
    "HELIUS_API_KEY": "",
    "HELIUS_RPC_URL": "https://mainnet.helius-rpc.com/",
    "HELIUS_PAGE_LIMIT": 1000,
    "HELIUS_MAX_PAGES": 3,

    # Flux temps réel PumpPortal
    "PUMPPORTAL_WS_URL": "wss://pumpportal.fun/api/data",
    "ENABLE_PUMPPORTAL_WS": True,
    "RECONNECT_DELAY_SECONDS": 30,

    # Timing
    "FETCH_TIMEOUT_SECONDS": 20,
    "REFRESH_INTERVAL_SECONDS": 900,

    # Requêtes
    "SEARCH_RESULT_LIMIT": 50,

    # Mémoire persistante
    "MEMORY_SINK_FILE": "",
    "MEMORY_SINK_URL": "",
    "MEMORY_SINK_TIMEOUT_SECONDS": 10,

    # System
    "LOG_LEVEL": "INFO",
}


def load_config() -> Dict[str, Any]:
    """
    Charge la configuration depuis le fichier config.json puis applique
    les variables d'environnement par-dessus

    Returns:
        Dictionnaire de configuration
    """
    config_file = os.environ.get("CONFIG_FILE", "config.json")
    config = dict(DEFAULT_CONFIG)

    if os.path.exists(config_file):
        try:
            with open(config_file, "r") as f:
                file_config = json.load(f)
            if not isinstance(file_config, dict):
                raise ValueError("le fichier doit contenir un objet JSON")
            config.update(file_config)
            logger.info(f"Configuration chargée depuis: {config_file}")
        except Exception as e:
            logger.error(f"Erreur lors du chargement de la configuration: {e}")
            logger.info("Utilisation de la configuration par défaut")
            config = dict(DEFAULT_CONFIG)

    # Les variables d'environnement ont toujours le dernier mot
    config.update(load_config_from_env(base=config))
    return config


def load_config_from_env(base: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Charge la configuration depuis les variables d'environnement

    Args:
        base: Valeurs de repli (DEFAULT_CONFIG si absent)

    Returns:
        Dictionnaire de configuration
    """
    base = base if base is not None else DEFAULT_CONFIG
    config = {}

    for key, default_value in DEFAULT_CONFIG.items():
        env_value = os.environ.get(key)
        fallback = base.get(key, default_value)

        if env_value is None:
            config[key] = fallback
            continue

        try:
            if isinstance(default_value, bool):
                config[key] = env_value.strip().lower() in ("1", "true", "yes")
            elif isinstance(default_value, int):
                config[key] = int(env_value)
            elif isinstance(default_value, float):
                config[key] = float(env_value)
            else:
                config[key] = env_value
        except ValueError as parse_err:
            logger.warning(f"Impossible de parser la variable d'env {key}: {parse_err}. Valeur par défaut utilisée.")
            config[key] = fallback

    return config
