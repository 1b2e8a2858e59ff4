"""Plugin mounting its services on start and unmounting them on stop."""

from http_service.plugins.base import AbstractPlugin
from http_service.service import HTTPService


class HTTPServicePlugin(AbstractPlugin):
    """Mounts every router registered by this plugin.

    Subclasses declare their services in ``_on_initialize``::

        class MyServicePlugin(HTTPServicePlugin):
            def _on_initialize(self):
                self.directory("services")
                self.router("my:http:service", build_my_service)
    """

    def routers(self) -> list[HTTPService]:
        """Services registered as routers by this plugin, in registration order."""
        return self.injector.filter(type="router", plugin=self).values()

    def _on_start(self) -> None:
        """Find all the routers for this plugin and mount them on the server.

        Mounting is all-or-nothing: when one router fails, the routers mounted
        before it are unmounted again and the error propagates.
        """
        mounted: list[HTTPService] = []
        try:
            for router in self.routers():
                router.mount()
                mounted.append(router)
        except Exception as e:
            self.log.error(
                "plugin_mount_failed", error=str(e), mounted=len(mounted), exc_info=e
            )
            for router in reversed(mounted):
                try:
                    router.unmount()
                except Exception as rollback_error:
                    self.log.error(
                        "plugin_mount_rollback_failed",
                        service=type(router).__name__,
                        error=str(rollback_error),
                        exc_info=rollback_error,
                    )
            raise

        self.log.debug("plugin_routers_mounted", count=len(mounted))

    def _on_stop(self) -> None:
        """Find all the routers for this plugin and unmount them from the server."""
        routers = self.routers()
        for router in routers:
            router.unmount()

        self.log.debug("plugin_routers_unmounted", count=len(routers))
