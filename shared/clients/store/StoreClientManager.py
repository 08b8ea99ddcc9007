from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig


class StoreClientManager:
    """
    Instantiates the store clients listed in STORE_ENGINES.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.clients = self._initialize_clients()

    def _get_engines_from_env(self) -> list[str]:
        """
        Reads the list of store engines from STORE_ENGINES, e.g. "[firestore]".

        Returns:
            list[str]: Capitalized engine names.

        Raises:
            ValueError: If no engine is configured.
        """
        engines = self.helper_config.get_list_val("STORE_ENGINES", default=["firestore"])
        if not engines:
            raise ValueError("No store engines specified in configuration.")
        return [engine.strip().lower().capitalize() for engine in engines]

    def _initialize_clients(self) -> list[StoreClientInterface]:
        """
        Imports shared.clients.store.<engine>.StoreClient<Engine> for every configured engine.

        Raises:
            ValueError: If an engine is unknown or no client could be created.
        """
        clients = []
        for engine in self._get_engines_from_env():
            class_name = f"StoreClient{engine}"
            try:
                module = __import__(
                    f"shared.clients.store.{engine.lower()}.{class_name}",
                    fromlist=[class_name],
                )
                client_class = getattr(module, class_name)
            except (ImportError, AttributeError) as e:
                raise ValueError(f"Unsupported store engine specified: '{engine}'. Error: {e}")
            clients.append(client_class(helper_config=self.helper_config))
            self.logging.debug("Instantiated store client for engine: %s", engine)
        if not clients:
            raise ValueError("No valid store clients could be instantiated from the specified engines.")
        return clients

    def get_clients(self) -> list[StoreClientInterface]:
        return self.clients

    def get_client(self, engine: str | None = None) -> StoreClientInterface:
        """
        Returns the client of an engine, or the first configured one.

        Raises:
            ValueError: If no client for the engine is configured.
        """
        if engine is None:
            return self.clients[0]
        for client in self.clients:
            if client.get_engine_name() == engine.lower():
                return client
        raise ValueError(f"No store client configured for engine '{engine}'.")
