"""Command line entrypoint for the validator consolidator."""

from pathlib import Path
from pydantic import ValidationError
from typing import List, Optional

import json
import logging
import typer

from .config import Config, load_config
from .consolidator import Consolidator
from .errors import ConsolidatorError
from .models import ConsolidationRequest, Network


app = typer.Typer(add_completion=False)


def _setup(config: Optional[Path], network: str) -> tuple[Consolidator, str]:
    """Load the configuration and build the consolidator.

    Args:
        config: Optional[Path]
            Configuration file, if any.
        network: str
            Network requested on the command line.

    Returns:
        tuple[Consolidator, str]
            The consolidator and the normalized network name.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)-8s %(message)s'
    )

    try:
        network = Network(network.lower())
    except ValueError:
        raise typer.BadParameter(
            f'Invalid network: {network}. Supported networks: {", ".join(n.value for n in Network)}',
            param_hint='--network',
        )

    try:
        cfg: Config = load_config(str(config) if config else None)
    except ValidationError as err:
        raise typer.BadParameter(f'Invalid configuration file: {err}')

    return Consolidator.from_config(cfg), str(network)


def _config_option() -> Optional[Path]:
    return typer.Option(
        None,
        help="File containing the validator consolidator configuration.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    )


@app.command()
def validators(
    network: str = typer.Option(..., help="Ethereum network (mainnet, hoodi)."),
    withdrawal_credentials: str = typer.Option(..., help="Withdrawal credentials or execution address."),
    config: Optional[Path] = _config_option(),
) -> None:
    """List validators using some withdrawal credentials."""
    consolidator, network = _setup(config, network)

    try:
        summaries = consolidator.list_validators(withdrawal_credentials, network)
    except ValueError as err:
        raise typer.BadParameter(str(err))
    except ConsolidatorError as err:
        logging.error(f'❌ {err}')
        raise typer.Exit(code=1)

    typer.echo(json.dumps([s.model_dump(mode='json', by_alias=True) for s in summaries], indent=2))


@app.command()
def consolidate(
    network: str = typer.Option(..., help="Ethereum network (mainnet, hoodi)."),
    target: str = typer.Option(..., help="Target validator public key."),
    source: List[str] = typer.Option(..., help="Source validator public key, can be repeated."),
    sender: str = typer.Option(..., help="Address sending the consolidation requests."),
    config: Optional[Path] = _config_option(),
) -> None:
    """Prepare the unsigned transactions consolidating sources into target."""
    consolidator, network = _setup(config, network)

    try:
        request = ConsolidationRequest(
            target_pubkey=target,
            source_pubkeys=source,
            sender=sender,
            network=network,
        )
        response = consolidator.consolidate(request)
    except (ValidationError, ValueError) as err:
        raise typer.BadParameter(str(err))
    except ConsolidatorError as err:
        logging.error(f'❌ {err}')
        raise typer.Exit(code=1)

    typer.echo(json.dumps(response.model_dump(mode='json', by_alias=True, exclude_none=True), indent=2))

    if not response.success:
        raise typer.Exit(code=1)
