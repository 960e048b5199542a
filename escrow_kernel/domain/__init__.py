"""Pure domain logic: time, pricing, winner selection and result DTOs."""
