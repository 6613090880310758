from launch_scanner.chains.base import ChainFamily
from launch_scanner.config import settings
from launch_scanner.content.fetcher import LinkSpec
from launch_scanner.launchpads.base import LaunchpadStrategy, LinkParams
from launch_scanner.launchpads.virtuals.client import LAUNCHPAD_NAME

VIRTUALS_TOTAL_SUPPLY = 1_000_000_000


class _VirtualsLinks(LaunchpadStrategy):
    launchpad_name = LAUNCHPAD_NAME
    fixed_total_supply = VIRTUALS_TOTAL_SUPPLY

    def launch_url(self, params: LinkParams) -> str:
        return f"{settings.virtuals_app_base}/virtual/{params.uid or params.launchpad_specific_id}"

    def _profile_link(self, params: LinkParams) -> list[LinkSpec]:
        if not params.creator_address:
            return []
        return [LinkSpec(
            url=f"{settings.virtuals_profile_api_base}/{params.creator_address}",
            name="Creator profile on Virtuals Protocol",
        )]


class VirtualsBaseLinks(_VirtualsLinks):
    family = ChainFamily.EVM

    def custom_links(self, params: LinkParams) -> list[LinkSpec]:
        links = self._profile_link(params)
        if params.uid or params.launchpad_specific_id:
            links.append(LinkSpec(
                url=self.launch_url(params),
                name="Launch on Virtuals Protocol App",
                use_advanced=True,
                mode="scrape",
            ))
        if params.token_address:
            links.append(LinkSpec(
                url=f"https://basescan.org/token/{params.token_address}",
                name="Token on Basescan",
                use_advanced=True,
                mode="scrape",
                max_pages=1,
            ))
        return links

    def holders_url(self, token: str) -> str:
        return f"https://basescan.org/token/{token}#balances"

    def pool_url(self, pool: str) -> str:
        return f"https://basescan.org/address/{pool}"

    def transaction_url(self, tx: str) -> str:
        return f"https://basescan.org/tx/{tx}"

    def creator_links(self, creator: str) -> list[tuple[str, str]]:
        return [
            ("Creator on basescan.org", f"https://basescan.org/address/{creator}"),
            ("Creator on virtuals.io", f"{settings.virtuals_app_base}/profile/{creator}"),
            ("Creator on debank.com", f"https://debank.com/profile/{creator}"),
        ]


class VirtualsSolanaLinks(_VirtualsLinks):
    family = ChainFamily.SOLANA

    def custom_links(self, params: LinkParams) -> list[LinkSpec]:
        links = self._profile_link(params)
        if params.token_address:
            links.append(LinkSpec(
                url=f"{settings.virtuals_app_base}/prototypes/{params.token_address}",
                name="Prototype on Virtuals Protocol App",
            ))
            links.append(LinkSpec(
                url=f"https://solscan.io/token/{params.token_address}",
                name="Token on Solscan",
                use_advanced=True,
                mode="scrape",
                max_pages=1,
            ))
        return links

    def holders_url(self, token: str) -> str:
        return f"https://solscan.io/token/{token}#holders"

    def pool_url(self, pool: str) -> str:
        return f"https://solscan.io/account/{pool}#portfolio"

    def transaction_url(self, tx: str) -> str:
        return f"https://solscan.io/tx/{tx}"

    def creator_links(self, creator: str) -> list[tuple[str, str]]:
        return [
            ("Creator on solscan.io", f"https://solscan.io/account/{creator}"),
            ("Creator on virtuals.io", f"{settings.virtuals_app_base}/profile/{creator}"),
            ("Creator on birdeye.so", f"https://birdeye.so/profile/{creator}"),
        ]


_STRATEGIES: dict[ChainFamily, LaunchpadStrategy] = {
    ChainFamily.EVM: VirtualsBaseLinks(),
    ChainFamily.SOLANA: VirtualsSolanaLinks(),
}


def strategy_for(family: ChainFamily) -> LaunchpadStrategy:
    return _STRATEGIES[family]
