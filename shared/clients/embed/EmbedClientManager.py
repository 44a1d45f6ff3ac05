from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface

SUPPORTED_ENGINES = ("openai", "local")


class EmbedClientManager:
    """
    Manager class to handle the Embed client based on configuration.

    Exactly one embedding engine is active per process: vectors of different
    engines differ in dimension and semantics and must not share a collection.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the Embed engine from ENV configuration.

        Returns:
            str: The name of the Embed engine, capitalised (e.g. "Openai").

        Raises:
            ValueError: If no Embed engine is specified in the configuration or if the specified engine is invalid.
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE")
        engine = engine.strip().lower()
        if engine not in SUPPORTED_ENGINES:
            raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Supported: {', '.join(SUPPORTED_ENGINES)}.")
        return engine.capitalize()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Initializes the Embed client based on the engine specified in the configuration.

        Returns:
            EmbedClientInterface: An instance of the Embed client that implements the EmbedClientInterface.

        Raises:
            ValueError: If the Embed client could not be instantiated from the specified engine.
        """
        engine = self._get_engine_from_env()
        className = f"EmbedClient{engine}"
        # import the class from shared.clients.embed.{engine}
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated Embed client for engine: {engine}")
        return client

    def get_client(self) -> EmbedClientInterface:
        """
        Returns the instantiated Embed client.

        Returns:
            EmbedClientInterface: The Embed client instance.
        """
        return self.client
